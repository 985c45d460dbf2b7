import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

# 프로젝트 루트 경로를 PYTHONPATH에 추가하여 모듈 import 가능하게 함
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.append(project_root)

load_dotenv(os.path.join(project_root, ".env"))

from stayscope.database.property_store import get_property_store
from stayscope.ingestion.pipeline import get_ingestion_pipeline

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_listings(path):
    """JSON 파일에서 매물 목록을 읽습니다. 최상위가 배열이거나 {"listings": [...]} 형태."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("listings")
    if not isinstance(payload, list):
        raise ValueError(f"매물 배열을 찾을 수 없습니다: {path}")
    return payload


def run(args):
    if args.init_schema:
        get_property_store().ensure_tables()
        logger.info("매물 테이블 생성 완료")
        if not args.file:
            return 0

    if not args.file or not args.province:
        logger.error("--file과 --province가 필요합니다.")
        return 2

    listings = load_listings(args.file)
    pipeline = get_ingestion_pipeline()
    logger.info(f"매물 {len(listings)}건 로드: {args.file}")

    if args.preview:
        result = pipeline.preview_regional_batch(args.province, listings)
    elif args.district and args.neighborhood:
        result = pipeline.ingest_neighborhood(
            args.province,
            args.district,
            args.neighborhood,
            listings,
            timeout_seconds=args.timeout,
        )
    else:
        result = pipeline.ingest_regional_batch(args.province, listings, timeout_seconds=args.timeout)

    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="숙소 매물 JSON 적재 스크립트")
    parser.add_argument("--file", help="매물 JSON 파일 경로")
    parser.add_argument("--province", help="대상 시/도 (구 명칭, 약칭 허용)")
    parser.add_argument("--district", help="시/군/구 (동과 함께 주면 동 단위 적재)")
    parser.add_argument("--neighborhood", help="동/읍/면")
    parser.add_argument("--preview", action="store_true", help="저장 없이 지역별 신규/업데이트 건수만 출력")
    parser.add_argument("--timeout", type=float, default=None, help="적재 타임아웃 (초)")
    parser.add_argument("--init-schema", action="store_true", help="매물 테이블 생성")
    args = parser.parse_args()

    try:
        sys.exit(run(args))
    except Exception as e:
        logger.error(f"적재 실패: {e}", exc_info=True)
        sys.exit(1)
