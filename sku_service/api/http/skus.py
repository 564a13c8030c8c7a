from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional
from decimal import Decimal
import uuid

from sku_service.core.auth import get_current_principal
from sku_service.core.config import settings
from sku_service.core.db import get_db
from sku_service.core.errors import ValidationError
from sku_service.domains.skus.entities import Sku
from sku_service.domains.skus.schemas import (
    BatchSkuRequest, ProblemDetail, SkuListResponse, SkuRequest, SkuResponse,
    SkuSearchCriteria, SkuUpdateRequest
)
from sku_service.domains.skus.services import SkuService, page_count

router = APIRouter(prefix="/api/v1/skus", tags=["skus"])

SORT_PATTERN = "^(created_at|updated_at|name|sku_code|category|brand|status|price)$"
DIRECTION_PATTERN = "^(asc|desc)$"
STATUS_PATTERN = "^(ACTIVE|INACTIVE|DISCONTINUED)$"

PROBLEM_RESPONSES = {
    400: {"model": ProblemDetail, "description": "Validation failed"},
    404: {"model": ProblemDetail, "description": "SKU not found"},
    409: {"model": ProblemDetail, "description": "Duplicate SKU or version conflict"},
}


def parse_if_match(if_match: Optional[str]) -> Optional[int]:
    """If-Match: "3", W/"3" или 3 -> 3; отсутствие или * -> без проверки"""
    if if_match is None:
        return None
    value = if_match.strip()
    if value in ("", "*"):
        return None
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    if not value.isdigit():
        raise ValidationError(
            "If-Match must carry the SKU version",
            errors={"If-Match": "must be a version number such as \"3\""},
        )
    return int(value)


def set_version_headers(response: Response, sku: Sku) -> None:
    response.headers["ETag"] = f'"{sku.version}"'


def to_list_response(skus: List[Sku], total: int, page: int, per_page: int) -> SkuListResponse:
    return SkuListResponse(
        skus=[SkuResponse.from_entity(sku) for sku in skus],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=page_count(total, per_page),
    )


@router.post(
    "",
    response_model=SkuResponse,
    status_code=status.HTTP_201_CREATED,
    responses={k: PROBLEM_RESPONSES[k] for k in (400, 409)},
)
async def create_sku(
    request: SkuRequest,
    response: Response,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Создание нового SKU"""
    sku_service = SkuService(db)
    sku = await sku_service.create_sku(request, actor=principal)

    set_version_headers(response, sku)
    response.headers["Location"] = f"{router.prefix}/{sku.id}"
    return SkuResponse.from_entity(sku)


@router.post(
    "/batch",
    response_model=List[SkuResponse],
    status_code=status.HTTP_201_CREATED,
    responses={k: PROBLEM_RESPONSES[k] for k in (400, 409)},
)
async def create_skus_batch(
    request: BatchSkuRequest,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Пакетное создание SKU (до 100 штук, атомарно)"""
    sku_service = SkuService(db)
    skus = await sku_service.create_skus_batch(request.skus, actor=principal)
    return [SkuResponse.from_entity(sku) for sku in skus]


@router.get("", response_model=SkuListResponse, responses={400: PROBLEM_RESPONSES[400]})
async def list_skus(
    category: Optional[str] = Query(None, description="Category code, e.g. LBR"),
    sku_status: Optional[str] = Query(None, alias="status", pattern=STATUS_PATTERN),
    brand: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("created_at", pattern=SORT_PATTERN),
    direction: str = Query("desc", pattern=DIRECTION_PATTERN),
    db: AsyncSession = Depends(get_db)
):
    """Получение списка SKU; с фильтрами работает как фильтрация"""
    sku_service = SkuService(db)

    if any(value is not None for value in (category, sku_status, brand, min_price, max_price)):
        skus, total = await sku_service.filter_skus(
            category=category,
            status=sku_status,
            brand=brand,
            min_price=min_price,
            max_price=max_price,
            page=page,
            per_page=per_page,
            sort_by=sort_by,
            direction=direction,
        )
    else:
        skus, total = await sku_service.list_skus(
            page=page, per_page=per_page, sort_by=sort_by, direction=direction
        )

    return to_list_response(skus, total, page, per_page)


@router.get("/search", response_model=SkuListResponse, responses={400: PROBLEM_RESPONSES[400]})
async def search_skus(
    query: Optional[str] = Query(None, description="Search in name or description"),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    sku_status: Optional[str] = Query(None, alias="status", pattern=STATUS_PATTERN),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    tags: Optional[List[str]] = Query(None, description="Matches SKUs carrying any of the tags"),
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    sort_by: str = Query("name", pattern=SORT_PATTERN),
    direction: str = Query("asc", pattern=DIRECTION_PATTERN),
    db: AsyncSession = Depends(get_db)
):
    """Поиск SKU по критериям"""
    criteria = SkuSearchCriteria(
        query=query,
        category=category,
        subcategory=subcategory,
        brand=brand,
        status=sku_status,
        min_price=min_price,
        max_price=max_price,
        tags=tags,
    )
    sku_service = SkuService(db)
    skus, total = await sku_service.search_skus(
        criteria, page=page, per_page=per_page, sort_by=sort_by, direction=direction
    )
    return to_list_response(skus, total, page, per_page)


@router.get("/categories", response_model=Dict[str, str])
async def get_categories(db: AsyncSession = Depends(get_db)):
    """Справочник кодов категорий"""
    return await SkuService(db).categories()


@router.get("/code/{sku_code}", response_model=SkuResponse, responses={404: PROBLEM_RESPONSES[404]})
async def get_sku_by_code(
    sku_code: str,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Получение SKU по коду"""
    sku = await SkuService(db).get_sku_by_code(sku_code)
    set_version_headers(response, sku)
    return SkuResponse.from_entity(sku)


@router.get("/upc/{upc}", response_model=SkuResponse, responses={404: PROBLEM_RESPONSES[404]})
async def get_sku_by_upc(
    upc: str,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Получение SKU по UPC"""
    sku = await SkuService(db).get_sku_by_upc(upc)
    set_version_headers(response, sku)
    return SkuResponse.from_entity(sku)


@router.get("/{sku_id}", response_model=SkuResponse, responses={404: PROBLEM_RESPONSES[404]})
async def get_sku(
    sku_id: uuid.UUID,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Получение SKU по идентификатору"""
    sku = await SkuService(db).get_sku_by_id(sku_id)
    set_version_headers(response, sku)
    return SkuResponse.from_entity(sku)


@router.put("/{sku_id}", response_model=SkuResponse, responses=PROBLEM_RESPONSES)
async def update_sku(
    sku_id: uuid.UUID,
    request: SkuRequest,
    response: Response,
    if_match: Optional[str] = Header(None),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Полное обновление SKU"""
    sku = await SkuService(db).update_sku(
        sku_id, request, expected_version=parse_if_match(if_match), actor=principal
    )
    set_version_headers(response, sku)
    return SkuResponse.from_entity(sku)


@router.patch("/{sku_id}", response_model=SkuResponse, responses=PROBLEM_RESPONSES)
async def partial_update_sku(
    sku_id: uuid.UUID,
    request: SkuUpdateRequest,
    response: Response,
    if_match: Optional[str] = Header(None),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Частичное обновление SKU"""
    sku = await SkuService(db).partial_update_sku(
        sku_id, request, expected_version=parse_if_match(if_match), actor=principal
    )
    set_version_headers(response, sku)
    return SkuResponse.from_entity(sku)


@router.delete(
    "/{sku_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={k: PROBLEM_RESPONSES[k] for k in (404, 409)},
)
async def delete_sku(
    sku_id: uuid.UUID,
    if_match: Optional[str] = Header(None),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Мягкое удаление SKU (статус DISCONTINUED)"""
    sku = await SkuService(db).delete_sku(
        sku_id, expected_version=parse_if_match(if_match), actor=principal
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers={"ETag": f'"{sku.version}"'})
