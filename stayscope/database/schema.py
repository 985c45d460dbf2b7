"""
지역 계층 / 매물 / 매물 하위 테이블 스키마 정의
"""
from typing import Dict, List, Optional, Tuple

# MySQL ER_DUP_ENTRY
DUP_ENTRY_ERRNO = 1062

REGION_LEVELS: Dict[str, Dict[str, Optional[str]]] = {
    "city": {
        "table": "cities",
        "id_column": "city_id",
        "name_column": "city_name",
        "parent_column": None,
    },
    "district": {
        "table": "districts",
        "id_column": "district_id",
        "name_column": "district_name",
        "parent_column": "city_id",
    },
    "neighborhood": {
        "table": "neighborhoods",
        "id_column": "neighborhood_id",
        "name_column": "neighborhood_name",
        "parent_column": "district_id",
    },
}

PROPERTY_INSERT_COLUMNS: Tuple[str, ...] = (
    "neighborhood_id",
    "external_id",
    "name",
    "address",
    "building_type",
    "latitude",
    "longitude",
    "crawled_at",
)

# 업데이트 시 갱신 가능한 컬럼 (surrogate id, 하위 테이블은 건드리지 않는다)
PROPERTY_UPDATE_COLUMNS: Tuple[str, ...] = (
    "neighborhood_id",
    "name",
    "address",
    "building_type",
    "latitude",
    "longitude",
    "crawled_at",
    "updated_at",
)

DISCOUNT_WEEKS: Tuple[int, ...] = tuple(range(2, 13))

SUB_ENTITY_COLUMNS: Dict[str, List[str]] = {
    "property_details": [
        "property_id",
        "room_count",
        "bathroom_count",
        "kitchen_count",
        "living_room_count",
        "size_pyeong",
        "has_elevator",
        "parking_info",
        "is_super_host",
    ],
    "property_pricing": [
        "property_id",
        "weekly_price",
        "weekly_maintenance",
        "cleaning_fee",
        *[f"discount_{weeks}weeks" for weeks in DISCOUNT_WEEKS],
    ],
    "property_occupancy": [
        "property_id",
        "occupancy_rate",
        "occupancy_2rate",
        "occupancy_3rate",
    ],
    "property_images": [
        "property_id",
        "image_url",
        "is_primary",
        "display_order",
    ],
    "property_reviews": [
        "property_id",
        "user_name",
        "review_date",
        "score",
        "review_text",
    ],
    "property_review_summary": [
        "property_id",
        "review_count",
        "average_score",
        "latest_review_date",
    ],
}

SUB_ENTITY_TABLES: Tuple[str, ...] = tuple(SUB_ENTITY_COLUMNS.keys())

_TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"

_DISCOUNT_COLUMNS_DDL = ",\n".join(
    f"                discount_{weeks}weeks DECIMAL(5, 2) NOT NULL DEFAULT 0" for weeks in DISCOUNT_WEEKS
)

TABLE_DDL: List[str] = [
    f"""
            CREATE TABLE IF NOT EXISTS cities (
                city_id BIGINT PRIMARY KEY AUTO_INCREMENT,
                city_name VARCHAR(64) NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE KEY uniq_city_name (city_name)
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS districts (
                district_id BIGINT PRIMARY KEY AUTO_INCREMENT,
                city_id BIGINT NOT NULL,
                district_name VARCHAR(64) NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE KEY uniq_city_district (city_id, district_name),
                CONSTRAINT fk_districts_city FOREIGN KEY (city_id) REFERENCES cities (city_id)
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS neighborhoods (
                neighborhood_id BIGINT PRIMARY KEY AUTO_INCREMENT,
                district_id BIGINT NOT NULL,
                neighborhood_name VARCHAR(64) NOT NULL,
                last_synced_at DATETIME NULL,
                property_count INT NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE KEY uniq_district_neighborhood (district_id, neighborhood_name),
                CONSTRAINT fk_neighborhoods_district FOREIGN KEY (district_id) REFERENCES districts (district_id)
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS properties (
                id BIGINT PRIMARY KEY AUTO_INCREMENT,
                neighborhood_id BIGINT NOT NULL,
                external_id VARCHAR(64) CHARACTER SET utf8mb4 COLLATE utf8mb4_bin NOT NULL,
                name VARCHAR(255) NOT NULL DEFAULT '',
                address VARCHAR(500) NOT NULL DEFAULT '',
                building_type VARCHAR(64) NOT NULL DEFAULT '',
                latitude DECIMAL(10, 7) NULL,
                longitude DECIMAL(10, 7) NULL,
                crawled_at DATETIME NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME NULL,
                UNIQUE KEY uniq_external_id (external_id),
                INDEX idx_neighborhood (neighborhood_id),
                CONSTRAINT fk_properties_neighborhood FOREIGN KEY (neighborhood_id)
                    REFERENCES neighborhoods (neighborhood_id)
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_details (
                property_id BIGINT PRIMARY KEY,
                room_count INT NOT NULL DEFAULT 0,
                bathroom_count INT NOT NULL DEFAULT 0,
                kitchen_count INT NOT NULL DEFAULT 0,
                living_room_count INT NOT NULL DEFAULT 0,
                size_pyeong DECIMAL(8, 2) NOT NULL DEFAULT 0,
                has_elevator TINYINT(1) NOT NULL DEFAULT 0,
                parking_info VARCHAR(255) NOT NULL DEFAULT '',
                is_super_host TINYINT(1) NOT NULL DEFAULT 0,
                CONSTRAINT fk_details_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_pricing (
                property_id BIGINT PRIMARY KEY,
                weekly_price BIGINT NOT NULL DEFAULT 0,
                weekly_maintenance BIGINT NOT NULL DEFAULT 0,
                cleaning_fee BIGINT NOT NULL DEFAULT 0,
{_DISCOUNT_COLUMNS_DDL},
                updated_at DATETIME NULL,
                CONSTRAINT fk_pricing_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_occupancy (
                property_id BIGINT PRIMARY KEY,
                occupancy_rate DECIMAL(5, 2) NOT NULL DEFAULT 0,
                occupancy_2rate DECIMAL(5, 2) NOT NULL DEFAULT 0,
                occupancy_3rate DECIMAL(5, 2) NOT NULL DEFAULT 0,
                updated_at DATETIME NULL,
                CONSTRAINT fk_occupancy_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_images (
                id BIGINT PRIMARY KEY AUTO_INCREMENT,
                property_id BIGINT NOT NULL,
                image_url VARCHAR(1000) NOT NULL,
                is_primary TINYINT(1) NOT NULL DEFAULT 0,
                display_order INT NOT NULL DEFAULT 0,
                INDEX idx_images_property (property_id),
                CONSTRAINT fk_images_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_reviews (
                id BIGINT PRIMARY KEY AUTO_INCREMENT,
                property_id BIGINT NOT NULL,
                user_name VARCHAR(100) NOT NULL DEFAULT '',
                review_date DATETIME NULL,
                score DECIMAL(3, 2) NOT NULL DEFAULT 0,
                review_text TEXT,
                INDEX idx_reviews_property (property_id),
                CONSTRAINT fk_reviews_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
    f"""
            CREATE TABLE IF NOT EXISTS property_review_summary (
                property_id BIGINT PRIMARY KEY,
                review_count INT NOT NULL DEFAULT 0,
                average_score DECIMAL(3, 2) NOT NULL DEFAULT 0,
                latest_review_date DATETIME NULL,
                CONSTRAINT fk_review_summary_property FOREIGN KEY (property_id) REFERENCES properties (id) ON DELETE CASCADE
            ) {_TABLE_OPTIONS}
    """,
]
