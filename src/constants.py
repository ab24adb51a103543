"""
Shared constants used across multiple modules.
Single source of truth for medications, injection sites and canned guidance.
"""

# Medication catalogue (dose ladders in mg)
MEDICATION_INFO = {
    "ozempic":  {"name": "Ozempic",  "doses": (0.25, 0.5, 1.0, 2.0),           "unit": "mg", "frequency": "weekly"},
    "wegovy":   {"name": "Wegovy",   "doses": (0.25, 0.5, 1.0, 1.7, 2.4),      "unit": "mg", "frequency": "weekly"},
    "mounjaro": {"name": "Mounjaro", "doses": (2.5, 5.0, 7.5, 10.0, 12.5, 15.0), "unit": "mg", "frequency": "weekly"},
    "zepbound": {"name": "Zepbound", "doses": (2.5, 5.0, 7.5, 10.0, 12.5, 15.0), "unit": "mg", "frequency": "weekly"},
    "saxenda":  {"name": "Saxenda",  "doses": (0.6, 1.2, 1.8, 2.4, 3.0),       "unit": "mg", "frequency": "daily"},
    "victoza":  {"name": "Victoza",  "doses": (0.6, 1.2, 1.8),                 "unit": "mg", "frequency": "daily"},
}

MEDICATIONS = tuple(MEDICATION_INFO)

DAILY_MEDICATIONS = frozenset(
    code for code, info in MEDICATION_INFO.items() if info["frequency"] == "daily"
)

INJECTION_SITES = {
    "abdomen-left":  "Left Abdomen",
    "abdomen-right": "Right Abdomen",
    "thigh-left":    "Left Thigh",
    "thigh-right":   "Right Thigh",
    "arm-left":      "Left Arm",
    "arm-right":     "Right Arm",
}

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")

# Symptom families the meal advisor has tailored guidance for
SYMPTOM_FAMILIES = {
    "nausea": {"nausea", "queasiness", "vomiting"},
    "early_fullness": {"early fullness", "early_fullness", "fullness", "early satiety"},
    "heartburn": {"heartburn", "acid reflux", "reflux", "indigestion"},
}

INSUFFICIENT_DATA_RECOMMENDATIONS = (
    "Continue logging injections and symptoms for at least 2-3 weeks to identify patterns.",
    "Consistent tracking will unlock personalized insights about your medication response.",
)

CONTINUE_MONITORING = "Continue monitoring your patterns. More data will improve insight accuracy."

PLACEHOLDER_INSIGHT = "Continue logging to build personalized insights"

# degraded_reasons vocabulary
REASON_DATA_UNAVAILABLE = "data_unavailable"
REASON_INSUFFICIENT_DATA = "insufficient_data"
REASON_ANALYSIS_EXCEPTION = "analysis_exception"
