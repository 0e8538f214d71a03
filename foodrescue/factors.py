# foodrescue/factors.py
# Point awards and impact factors.

REPORT_POINTS = 10

# collectors get a random award in [COLLECT_POINTS_MIN, COLLECT_POINTS_MAX]
COLLECT_POINTS_MIN = 10
COLLECT_POINTS_MAX = 59

# kg of CO2 offset per unit of food collected
CO2_OFFSET_PER_UNIT = 0.5

DEFAULT_ACCOUNT = {
    "name": "Default Reward",
    "collection_info": "Default Collection Info",
    "points": 0,
    "level": 1,
    "is_available": True,
}

POINTS_ENTRY = {
    "name": "Your Points",
    "description": "redeem your earned points",
    "collection_info": "Points earned from reporting and collecting waste",
}

# payload recorded on the CollectedWaste row when the collector sends none
DEFAULT_COLLECTION_CHECK = {"foodTypeMatch": True, "quantityMatch": True, "confidence": 1}

# model expiry estimates beyond this are ignored
MAX_EXPIRY_HOURS = 24 * 365
