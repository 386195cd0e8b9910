# marketplace/config/feature_flags.py
# Marketplace Feature Flags
# 기본값은 기존 동작(호스트는 언제든 경매 삭제 가능)을 유지한다.

FEATURE_FLAGS = {
    # 입찰이 하나라도 있으면 경매 삭제 금지
    "BLOCK_DELETE_WITH_BIDS": False,
    # 마감이 지난 경매는 삭제 금지
    "BLOCK_DELETE_AFTER_DEADLINE": False,
}
