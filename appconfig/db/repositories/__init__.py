from appconfig.db.repositories.orgs import OrgsRepository
from appconfig.db.repositories.applications import (
    ApplicationsRepository,
    ApplicationVersionsRepository,
    StoredAssetsRepository,
)
from appconfig.db.repositories.content import (
    ContentAnalyticsRepository,
    ContentPagesRepository,
    ContentVersionsRepository,
)
from appconfig.db.repositories.marketing_slides import MarketingSlidesRepository
from appconfig.db.repositories.billing import BillingCustomersRepository, SubscriptionsRepository
from appconfig.db.repositories.entities import EntitiesRepository, EntityRelationsRepository
