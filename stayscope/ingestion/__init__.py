"""
지역 계층 기반 숙소 매물 적재 파이프라인
"""
