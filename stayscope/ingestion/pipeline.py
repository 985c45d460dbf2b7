"""
숙소 매물 적재 파이프라인

동 단위 적재:
    계층 해석 → 기존 매물 분류 → core 매물 insert/update → 신규 매물 하위 테이블 fan-out
지역 일괄 적재:
    주소 검증 → (시/군/구, 동/읍/면) 그룹화 → 그룹마다 동 단위 적재

청크/테이블 단위 실패는 요약에 모으고, 시/도 계층 해석 실패만 예외로 올린다.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from stayscope.config import IngestionConfig, get_config
from stayscope.database.property_store import get_property_store
from stayscope.ingestion.errors import ExistenceLookupError, HierarchyResolutionError
from stayscope.ingestion.existence_classifier import ExistenceClassifier
from stayscope.ingestion.hierarchy_resolver import RegionHierarchyResolver
from stayscope.ingestion.listing_normalizer import external_listing_id
from stayscope.ingestion.property_reconciler import TIMEOUT_REASON, PropertyReconciler
from stayscope.ingestion.sub_entity_fanout import STATUS_FAILED, SubEntityFanout
from stayscope.region.address_validator import validate_parsed_addresses
from stayscope.region.province_names import canonical_province_name, province_names_match
from stayscope.region.region_grouper import group_by_region
from stayscope.utils.batching import deadline_after, deadline_passed

logger = logging.getLogger(__name__)

OTHER_PROVINCE = "other province"


def _elapsed(started: float) -> float:
    return round(time.time() - started, 3)


def _invalid_entry(listing: Dict[str, Any], error: str) -> Dict[str, Any]:
    return {
        "id": external_listing_id(listing),
        "address": listing.get("address") or "",
        "error": error,
    }


class ListingIngestionPipeline:
    """Hierarchical location-keyed listing ingestion."""

    def __init__(self, store=None, config: Optional[IngestionConfig] = None):
        self.store = store or get_property_store()
        self.config = config or get_config().ingestion

    def _classifier(self) -> ExistenceClassifier:
        return ExistenceClassifier(
            self.store,
            chunk_size=self.config.chunk_size,
            max_workers=self.config.lookup_max_workers,
        )

    def _deadline(self, timeout_seconds: Optional[float]) -> Optional[float]:
        if timeout_seconds is None:
            timeout_seconds = self.config.default_timeout_seconds
        return deadline_after(timeout_seconds)

    # ------------------------------------------------------------------
    # 동 단위 적재
    # ------------------------------------------------------------------

    def ingest_neighborhood(
        self,
        province: str,
        district: str,
        neighborhood: str,
        listings: List[Dict[str, Any]],
        timeout_seconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        한 동/읍/면에 매물 배치를 적재합니다.

        Raises:
            HierarchyResolutionError: 시/도 계층을 해석하지 못한 경우
        """
        resolver = RegionHierarchyResolver(self.store)
        return self._ingest_group(
            resolver,
            canonical_province_name(province),
            district,
            neighborhood,
            listings,
            self._deadline(timeout_seconds),
        )

    def _ingest_group(
        self,
        resolver: RegionHierarchyResolver,
        province: str,
        district: str,
        neighborhood: str,
        listings: List[Dict[str, Any]],
        deadline: Optional[float],
    ) -> Dict[str, Any]:
        started = time.time()
        now = datetime.now()
        summary: Dict[str, Any] = {
            "success": False,
            "new_properties": 0,
            "updated_properties": 0,
            "moved_properties": 0,
            "failed_properties": 0,
            "skipped_listings": 0,
            "total_properties": len(listings),
            "neighborhood_id": None,
            "processing_time_seconds": 0.0,
            "chunk_errors": [],
            "sub_entities": [],
            "timed_out": False,
        }

        try:
            region_ids = resolver.resolve(province, district, neighborhood, len(listings), now)
        except HierarchyResolutionError as e:
            if e.is_fatal:
                raise
            logger.error("지역 계층 해석 실패 (%s %s %s): %s", province, district, neighborhood, e)
            summary["failed_properties"] = len(listings)
            summary["error"] = str(e)
            summary["processing_time_seconds"] = _elapsed(started)
            return summary
        summary["neighborhood_id"] = region_ids.neighborhood_id

        try:
            classification = self._classifier().classify(listings, region_ids.neighborhood_id)
        except ExistenceLookupError as e:
            logger.error("기존 매물 조회 실패, 그룹 전체를 건너뜁니다 (%s %s): %s", district, neighborhood, e)
            summary["failed_properties"] = len(listings)
            summary["error"] = str(e)
            summary["processing_time_seconds"] = _elapsed(started)
            return summary
        summary["skipped_listings"] = classification.skipped

        reconciler = PropertyReconciler(
            self.store,
            chunk_size=self.config.chunk_size,
            max_workers=self.config.update_max_workers,
        )
        result = reconciler.reconcile(classification, region_ids.neighborhood_id, now, deadline)

        fanout = SubEntityFanout(
            self.store,
            chunk_size=self.config.chunk_size,
            max_workers=self.config.fanout_max_workers,
        )
        # 커밋된 신규 매물은 마감 시각과 무관하게 하위 테이블까지 채운다.
        outcomes = fanout.run(classification.to_insert, result.inserted_ids)
        timed_out = result.timed_out

        failed_tables = [outcome for outcome in outcomes if outcome.status == STATUS_FAILED]
        failed_chunks = result.failed_chunks

        summary.update(
            {
                "new_properties": result.inserted,
                "updated_properties": result.updated,
                "moved_properties": result.moved,
                "failed_properties": result.failed,
                "chunk_errors": [report.to_dict() for report in failed_chunks],
                "sub_entities": [outcome.to_dict() for outcome in outcomes],
                "timed_out": timed_out,
                "success": not failed_chunks and not failed_tables and not timed_out,
            }
        )

        if not summary["success"]:
            problems = []
            if failed_chunks:
                problems.append(f"core 청크 {len(failed_chunks)}개 실패 ({result.failed}건)")
            if failed_tables:
                problems.append("하위 테이블 실패: " + ", ".join(outcome.table for outcome in failed_tables))
            if timed_out:
                problems.append(TIMEOUT_REASON)
            summary["error"] = "; ".join(problems)

        summary["processing_time_seconds"] = _elapsed(started)
        logger.info(
            "동 단위 적재 완료 (%s %s %s): 신규 %s, 업데이트 %s, 위치 이전 %s, 실패 %s, %.3f초",
            province,
            district,
            neighborhood,
            summary["new_properties"],
            summary["updated_properties"],
            summary["moved_properties"],
            summary["failed_properties"],
            summary["processing_time_seconds"],
        )
        return summary

    # ------------------------------------------------------------------
    # 지역 일괄 적재
    # ------------------------------------------------------------------

    def _split_by_province(self, province: str, listings: List[Dict[str, Any]]) -> Dict[str, Any]:
        validation = validate_parsed_addresses(listings)
        invalid = [_invalid_entry(listing, listing["error"]) for listing in validation["invalid"]]
        in_province = []
        for listing in validation["valid"]:
            if province_names_match(listing["parsed_address"].province, province):
                in_province.append(listing)
            else:
                invalid.append(_invalid_entry(listing, OTHER_PROVINCE))
        return {
            "groups": group_by_region(in_province, province),
            "invalid": invalid,
        }

    def ingest_regional_batch(
        self,
        province: str,
        listings: List[Dict[str, Any]],
        timeout_seconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        시/도 하나에 대한 매물 배치를 주소로 나눠 동 단위로 적재합니다.
        한 그룹의 실패는 processing_results에 남기고 다음 그룹을 계속 처리합니다.

        Raises:
            HierarchyResolutionError: 시/도 계층을 해석하지 못한 경우
        """
        started = time.time()
        deadline = self._deadline(timeout_seconds)
        province_name = canonical_province_name(province)
        split = self._split_by_province(province_name, listings)
        groups = split["groups"]

        resolver = RegionHierarchyResolver(self.store)
        resolver.resolve_city(province_name)

        logger.info("지역 일괄 적재 시작: %s, %s개 지역, %s건", province_name, len(groups), len(listings))

        totals = {"new": 0, "updated": 0, "moved": 0, "failed": 0, "skipped": 0}
        error_regions = 0
        timed_out = False
        processing_results: List[Dict[str, Any]] = []

        for group in groups:
            if deadline_passed(deadline):
                timed_out = True
                error_regions += 1
                totals["failed"] += len(group.listings)
                processing_results.append(
                    {"region": group.label, "success": False, "total": len(group.listings), "error": TIMEOUT_REASON}
                )
                continue

            try:
                summary = self._ingest_group(
                    resolver, province_name, group.district, group.neighborhood, group.listings, deadline
                )
            except HierarchyResolutionError:
                raise
            except Exception as e:
                logger.error("지역 처리 중 예기치 못한 오류: %s (%s)", group.label, e, exc_info=True)
                error_regions += 1
                totals["failed"] += len(group.listings)
                processing_results.append(
                    {"region": group.label, "success": False, "total": len(group.listings), "error": str(e)}
                )
                continue

            totals["new"] += summary["new_properties"]
            totals["updated"] += summary["updated_properties"]
            totals["moved"] += summary["moved_properties"]
            totals["failed"] += summary["failed_properties"]
            totals["skipped"] += summary["skipped_listings"]
            timed_out = timed_out or summary["timed_out"]

            entry = {
                "region": group.label,
                "success": summary["success"],
                "neighborhood_id": summary["neighborhood_id"],
                "new_count": summary["new_properties"],
                "update_count": summary["updated_properties"],
                "move_count": summary["moved_properties"],
                "failed_count": summary["failed_properties"],
                "total": len(group.listings),
            }
            if not summary["success"]:
                error_regions += 1
                entry["error"] = summary.get("error")
                logger.warning("지역 처리 실패: %s (%s)", group.label, entry["error"])
            processing_results.append(entry)

        total_processed = totals["new"] + totals["updated"]
        result = {
            "success": error_regions == 0 and not timed_out,
            "province": province_name,
            "total_received": len(listings),
            "total_processed": total_processed,
            "new_properties": totals["new"],
            "updated_properties": totals["updated"],
            "moved_properties": totals["moved"],
            "failed_properties": totals["failed"],
            "skipped_listings": totals["skipped"],
            "invalid_listings": len(split["invalid"]),
            "error_regions": error_regions,
            "timed_out": timed_out,
            "processing_time_seconds": _elapsed(started),
            "processing_results": processing_results,
            "invalid": split["invalid"],
        }
        logger.info(
            "지역 일괄 적재 완료: %s/%s건 처리 (신규 %s, 업데이트 %s, 위치 이전 %s), 무효 %s건, 실패 지역 %s개",
            total_processed,
            len(listings),
            totals["new"],
            totals["updated"],
            totals["moved"],
            len(split["invalid"]),
            error_regions,
        )
        return result

    def preview_regional_batch(self, province: str, listings: List[Dict[str, Any]]) -> Dict[str, Any]:
        """저장 없이 그룹별 신규/업데이트 예상 건수만 계산합니다 (계층 생성도 하지 않음)."""
        province_name = canonical_province_name(province)
        split = self._split_by_province(province_name, listings)
        classifier = self._classifier()

        groups = []
        for group in split["groups"]:
            entry = group.to_dict()
            try:
                classification = classifier.classify(group.listings)
            except ExistenceLookupError as e:
                entry["error"] = str(e)
            else:
                group.new_count = len(classification.to_insert)
                group.update_count = len(classification.to_update)
                entry = group.to_dict()
            groups.append(entry)

        return {
            "success": True,
            "province": province_name,
            "total_received": len(listings),
            "valid_listings": sum(len(group.listings) for group in split["groups"]),
            "invalid_listings": len(split["invalid"]),
            "groups": groups,
            "invalid": split["invalid"],
        }


_ingestion_pipeline_singleton: Optional[ListingIngestionPipeline] = None


def get_ingestion_pipeline() -> ListingIngestionPipeline:
    global _ingestion_pipeline_singleton
    if _ingestion_pipeline_singleton is None:
        _ingestion_pipeline_singleton = ListingIngestionPipeline()
    return _ingestion_pipeline_singleton
