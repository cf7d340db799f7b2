# Services package.
#
# Each module exposes async functions that own the business rules and
# database access for one concern:
#
#   slugs             slug derivation and collision probing
#   tags              tag reconciliation and the cached tag list
#   projection        the externally visible article/profile/comment shape
#   cascade           what an article deletion removes
#   article_service   draft/published lifecycle, listings, feed
#   comment_service   comments on an article
#   favorite_service  idempotent favorite / unfavorite
#   person_service    person directory, profiles, follows
#
# Every function takes an AsyncSession first; routers own the transaction
# boundary through the ``get_db`` dependency and pass the caller's
# username explicitly.
