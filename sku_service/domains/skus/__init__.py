from sku_service.domains.skus.entities import CATEGORY_CODES, Dimensions, Sku, SkuStatus
from sku_service.domains.skus.schemas import (
    BatchSkuRequest, DimensionsDto, ProblemDetail, SkuListResponse, SkuRequest,
    SkuResponse, SkuSearchCriteria, SkuUpdateRequest
)
