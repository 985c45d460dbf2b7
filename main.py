from dotenv import load_dotenv
import os

load_dotenv(override=True)

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
import logging
from stayscope.api.ingestion_api import router as rental_router
# 서비스 시작 시 데이터베이스 초기화 (지연 초기화)
# 실제 사용 시점에 자동으로 초기화됨

app = FastAPI(title="Stayscope API", version="1.0.0")

# API 라우터 생성
api_router = APIRouter(prefix="/api")

# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 프로덕션에서는 특정 도메인으로 제한
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configure logging
log_file_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'log.txt')
logging.basicConfig(
    filename=log_file_path,
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True  # 기존 핸들러가 있어도 재설정
)


# 기본 페이지 (루트)
@app.get("/", response_class=HTMLResponse)
async def hello_world():
    return "<p>Stayscope</p>"


@api_router.get("/health")
async def health_check():
    return {"status": "ok"}


api_router.include_router(rental_router)
app.include_router(api_router)


# ============================================
# 애플리케이션 시작 시 초기화
# ============================================
@app.on_event("startup")
async def startup_event():
    """매물 테이블 생성 (실패해도 애플리케이션은 계속 실행)"""
    logging.info("Stayscope 애플리케이션 시작 중...")
    try:
        from stayscope.database.property_store import get_property_store
        get_property_store().ensure_tables()
        logging.info("매물 테이블 확인 완료")
    except Exception as e:
        logging.error(f"매물 테이블 초기화 실패: {e}", exc_info=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8991)
