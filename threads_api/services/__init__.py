# Services package.
#
# Each module exposes async functions that encapsulate business logic and
# database access for one part of the domain:
#
#   user_service    — register / login / user reads and the follow graph
#   post_service    — posts, comments, likes and the cached feed
#   follow_service  — follow edges
#
# All service functions accept an AsyncSession as their first argument so
# that the router layer controls the transaction boundary via ``get_db``.
# They raise the errors in ``threads_api.exceptions``; translating those
# into HTTP responses is left to ``threads_api.main``.
