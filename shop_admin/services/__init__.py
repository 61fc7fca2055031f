# Services package.
#
# Each module exposes a service class that encapsulates business logic for
# a single aggregate on top of its repository:
#
#   user_service    : registration, login and admin CRUD for User
#   product_service : CRUD and image-set reconciliation for Product
#
# Services are built per request with the injected cache and blob store
# (see ``shop_admin.dependencies``).  All methods accept an AsyncSession as
# their first argument so that the router layer controls the transaction
# boundary via the ``get_db`` dependency.
