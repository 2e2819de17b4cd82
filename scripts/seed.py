"""Database seeder for local development and pagination load testing."""
import asyncio
import argparse
import random
import time
from datetime import date, datetime, timezone, timedelta
from decimal import Decimal

from marketplace.database import engine, catalog_session, Base
from marketplace.models import (
    Payout,
    PayoutStatus,
    Seller,
    SellerStatus,
    Service,
    ServiceCategory,
    ServiceStatus,
    User,
)
from marketplace.services.payout_service import compute_commission
from marketplace.services.slugs import slugify

CATEGORIES = {
    "Design": ["Logo Design", "Brand Identity", "Illustration", "UI Design"],
    "Writing": ["Copywriting", "Blog Posts", "Translation", "Proofreading"],
    "Development": ["Landing Pages", "API Integration", "Bug Fixing", "Code Review"],
    "Marketing": ["SEO Audit", "Social Media", "Email Campaigns", "Ad Management"],
    "Audio": ["Voice Over", "Mixing", "Podcast Editing", "Jingles"],
}

SELLER_STATUSES = [
    SellerStatus.APPROVED,
    SellerStatus.APPROVED,
    SellerStatus.APPROVED,
    SellerStatus.PENDING_REVIEW,
    SellerStatus.SUSPENDED,
    SellerStatus.REJECTED,
]


async def seed(small: bool = False):
    num_services = 200 if small else 5000
    num_sellers = 10 if small else 100
    payouts_per_seller = 3 if small else 12

    print(f"Seeding: {num_services} services, {num_sellers} sellers, "
          f"up to {num_sellers * payouts_per_seller} payouts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with catalog_session() as session:
        # Category tree: one parent per group, one child per service kind
        leaves = []
        for order, (group, kinds) in enumerate(CATEGORIES.items()):
            parent = ServiceCategory(name=group, slug=slugify(group), order=order)
            session.add(parent)
            await session.flush()
            for child_order, kind in enumerate(kinds):
                child = ServiceCategory(
                    name=kind, slug=slugify(kind), order=child_order, parent_id=parent.id,
                )
                session.add(child)
                leaves.append(child)
        await session.flush()
        print(f"  Created {len(CATEGORIES) + len(leaves)} categories")

        # Services in batches; many share an order value to exercise the tiebreak
        batch_size = 500
        for batch_start in range(0, num_services, batch_size):
            batch_end = min(batch_start + batch_size, num_services)
            for i in range(batch_start, batch_end):
                category = random.choice(leaves)
                created = datetime.now(timezone.utc) - timedelta(minutes=random.randint(0, 60 * 24 * 365))
                session.add(Service(
                    name=f"{category.name} package {i}",
                    slug=f"{category.slug}-package-{i}",
                    short_description=f"A {category.name.lower()} offer tailored to your project.",
                    description=f"Everything included in {category.name.lower()} package {i}. " * 5,
                    status=random.choices(
                        [ServiceStatus.ACTIVE, ServiceStatus.DRAFT, ServiceStatus.INACTIVE],
                        weights=[8, 1, 1],
                    )[0],
                    order=random.randint(0, 20),
                    is_featured=random.random() < 0.05,
                    category_id=category.id,
                    created_at=created,
                ))
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: services created")

        # Users with seller profiles and their payout history
        total_payouts = 0
        for i in range(num_sellers):
            user = User(
                username=f"seller_{i:04d}",
                email=f"seller_{i:04d}@example.com",
                display_name=f"Seller {i}",
            )
            session.add(user)
            await session.flush()

            status = random.choice(SELLER_STATUSES)
            rate = Decimal(random.choice(["10.00", "15.00", "20.00", "25.00"]))
            seller = Seller(
                user_id=user.id,
                store_name=f"Studio {i}",
                slug=f"studio-{i}",
                status=status,
                commission_rate=rate,
                total_sales=random.randint(0, 500),
                total_revenue=Decimal(random.randint(0, 5_000_000)) / 100,
                average_rating=Decimal(random.randint(300, 500)) / 100,
            )
            session.add(seller)
            await session.flush()

            if status != SellerStatus.APPROVED:
                continue
            for month in range(payouts_per_seller):
                period_start = date(2025, 1, 1) + timedelta(days=30 * month)
                amount = Decimal(random.randint(1_000, 500_000)) / 100
                fee, net = compute_commission(amount, rate)
                payout_status = random.choices(list(PayoutStatus), weights=[2, 1, 6, 1])[0]
                processed = payout_status in (PayoutStatus.COMPLETED, PayoutStatus.FAILED)
                session.add(Payout(
                    seller_id=seller.id,
                    period_start=period_start,
                    period_end=period_start + timedelta(days=29),
                    amount=amount,
                    platform_fee=fee,
                    net_amount=net,
                    commission_rate=rate,
                    item_count=random.randint(1, 40),
                    status=payout_status,
                    failure_reason="Bank account rejected the transfer"
                    if payout_status == PayoutStatus.FAILED else None,
                    processed_at=datetime.now(timezone.utc) if processed else None,
                ))
                total_payouts += 1
        await session.flush()

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Services: {num_services}")
    print(f"  Sellers: {num_sellers}")
    print(f"  Payouts: {total_payouts}")


def main():
    parser = argparse.ArgumentParser(description="Seed the marketplace database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (200 services)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
