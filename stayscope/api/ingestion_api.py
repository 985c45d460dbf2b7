"""
Rental listing ingestion API.

- 동 단위 / 지역 일괄 적재, 일괄 적재 미리보기
- 주소 → 지역 계층 해석
- 지역 탐색 (시/도, 시/군/구, 동/읍/면)
- 매물 예약률 수동 수정
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from stayscope.database.property_store import get_property_store
from stayscope.ingestion.errors import HierarchyResolutionError
from stayscope.ingestion.pipeline import get_ingestion_pipeline
from stayscope.properties.occupancy_service import PropertyNotFoundError, update_occupancy
from stayscope.region.address_parser import resolve_address
from stayscope.region.province_names import canonical_province_name
from stayscope.utils.logger import log_error, log_info

logger = logging.getLogger(__name__)

MODULE_NAME = "rental_ingestion"

router = APIRouter(prefix="/rental", tags=["rental-ingestion"])


class NeighborhoodIngestionRequest(BaseModel):
    province: str = ""
    district: str = ""
    neighborhood: str = ""
    listings: Optional[List[Dict[str, Any]]] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class RegionalIngestionRequest(BaseModel):
    province: str = ""
    listings: Optional[List[Dict[str, Any]]] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class OccupancyUpdateRequest(BaseModel):
    occupancy_rate: float = Field(..., ge=0, le=100)
    occupancy_2rate: float = Field(..., ge=0, le=100)
    occupancy_3rate: float = Field(..., ge=0, le=100)


class AddressResolveResponse(BaseModel):
    province: str
    district: str
    neighborhood: str
    full_address: str


class RegionListResponse(BaseModel):
    level: Literal["provinces", "districts", "neighborhoods"]
    province: Optional[str] = None
    district: Optional[str] = None
    total: int
    rows: List[Dict[str, Any]] = Field(default_factory=list)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _serialize_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{key: _serialize_value(val) for key, val in row.items()} for row in rows]


def _elapsed_ms(started: float) -> int:
    return int((time.time() - started) * 1000)


@router.post("/ingestion/neighborhood")
def ingest_neighborhood(request: NeighborhoodIngestionRequest):
    """한 동/읍/면에 대한 매물 배치를 적재합니다."""
    if not request.province.strip() or not request.district.strip() or not request.neighborhood.strip():
        raise HTTPException(status_code=400, detail="필수 정보가 누락되었습니다. (province, district, neighborhood)")
    if request.listings is None:
        raise HTTPException(status_code=400, detail="필수 정보가 누락되었습니다. (listings)")

    started = time.time()
    region = f"{request.province} {request.district} {request.neighborhood}"
    try:
        result = get_ingestion_pipeline().ingest_neighborhood(
            request.province.strip(),
            request.district.strip(),
            request.neighborhood.strip(),
            request.listings,
            timeout_seconds=request.timeout_seconds,
        )
    except HierarchyResolutionError as err:
        log_error(MODULE_NAME, f"동 단위 적재 실패: {region}", error=err, execution_time_ms=_elapsed_ms(started))
        raise HTTPException(status_code=500, detail=str(err)) from err
    except Exception as err:
        log_error(MODULE_NAME, f"동 단위 적재 중 치명적 오류: {region}", error=err, execution_time_ms=_elapsed_ms(started))
        raise HTTPException(status_code=500, detail="Listing ingestion failed") from err

    metadata = {"region": region, **result}
    if result["success"]:
        log_info(MODULE_NAME, f"동 단위 적재 완료: {region}", execution_time_ms=_elapsed_ms(started), metadata=metadata)
    else:
        log_error(
            MODULE_NAME,
            f"동 단위 적재 일부 실패: {region} ({result.get('error')})",
            execution_time_ms=_elapsed_ms(started),
            metadata=metadata,
        )
    return result


@router.post("/ingestion/regional")
def ingest_regional(request: RegionalIngestionRequest):
    """시/도 단위 매물 배치를 주소로 나눠 일괄 적재합니다."""
    if not request.province.strip() or request.listings is None:
        raise HTTPException(status_code=400, detail="필수 정보가 누락되었습니다. (province, listings)")

    started = time.time()
    try:
        result = get_ingestion_pipeline().ingest_regional_batch(
            request.province.strip(),
            request.listings,
            timeout_seconds=request.timeout_seconds,
        )
    except Exception as err:
        log_error(
            MODULE_NAME,
            f"일괄 저장 중 치명적 오류: {request.province}",
            error=err,
            execution_time_ms=_elapsed_ms(started),
        )
        raise HTTPException(status_code=500, detail=f"일괄 저장 중 치명적 오류가 발생했습니다: {err}") from err

    log_info(
        MODULE_NAME,
        f"일괄 저장 완료: {result['total_processed']}/{result['total_received']}개 매물 처리",
        execution_time_ms=_elapsed_ms(started),
        metadata=result,
    )
    return result


@router.post("/ingestion/preview")
def preview_regional(request: RegionalIngestionRequest):
    """저장 없이 지역 그룹별 신규/업데이트 예상 건수를 돌려줍니다."""
    if not request.province.strip() or request.listings is None:
        raise HTTPException(status_code=400, detail="필수 정보가 누락되었습니다. (province, listings)")
    try:
        return get_ingestion_pipeline().preview_regional_batch(request.province.strip(), request.listings)
    except Exception as err:
        logger.error("Regional preview failed: %s", err, exc_info=True)
        raise HTTPException(status_code=500, detail="Regional preview failed") from err


@router.get("/address/resolve", response_model=AddressResolveResponse)
def resolve_address_endpoint(address: str = Query(..., min_length=1, description="도로명/지번 주소")):
    resolved = resolve_address(address)
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"주소에서 시/도를 찾을 수 없습니다: {address}")
    return resolved


@router.get("/regions", response_model=RegionListResponse)
def list_regions(
    level: Literal["provinces", "districts", "neighborhoods"] = Query(default="provinces"),
    province: Optional[str] = Query(default=None, description="시/도 (구 명칭, 약칭 허용)"),
    district: Optional[str] = Query(default=None, description="시/군/구"),
):
    try:
        store = get_property_store()
        province_name = canonical_province_name(province) if province else None
        if level == "provinces":
            rows = store.list_cities()
        elif level == "districts":
            if not province_name:
                raise ValueError("province is required for level=districts")
            rows = store.list_districts(province_name)
        else:
            if not province_name or not district:
                raise ValueError("province and district are required for level=neighborhoods")
            rows = store.list_neighborhoods(province_name, district)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    except Exception as err:
        logger.error("Region listing failed: %s", err, exc_info=True)
        raise HTTPException(status_code=500, detail="Region listing failed") from err

    return {
        "level": level,
        "province": province_name,
        "district": district,
        "total": len(rows),
        "rows": _serialize_rows(rows),
    }


@router.put("/properties/{property_id}/occupancy")
def update_property_occupancy(property_id: int, request: OccupancyUpdateRequest):
    try:
        result = update_occupancy(property_id, request.model_dump())
    except PropertyNotFoundError as err:
        raise HTTPException(status_code=404, detail=str(err)) from err
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    except Exception as err:
        log_error(MODULE_NAME, f"예약률 수정 실패: property_id={property_id}", error=err)
        raise HTTPException(status_code=500, detail="Occupancy update failed") from err

    log_info(MODULE_NAME, f"예약률 수정: property_id={property_id}", metadata=request.model_dump())
    return result
