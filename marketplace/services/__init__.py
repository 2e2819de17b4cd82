# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   catalog_service   Service CRUD, soft delete, cursor listing, cache
#   category_service  ServiceCategory tree CRUD, soft delete, cursor listing
#   seller_service    Seller profiles and their review lifecycle
#   payout_service    commission split and the payout status lifecycle
#   user_service      user accounts sellers are bound to
#   slugs             slug generation and the uniqueness check/backstop
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
