"""
주소 파싱 및 지역 그룹화
"""
from .address_parser import ParsedAddress, parse_address, resolve_address
from .address_validator import INCOMPLETE_ADDRESS, PARSE_FAILED, validate_parsed_addresses
from .province_names import canonical_province_name, legacy_province_names, province_names_match
from .region_grouper import RegionGroup, group_by_region
