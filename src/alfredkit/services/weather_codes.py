"""Short summaries for WMO weather codes."""

_ZH_SUMMARIES = {
    0: "晴朗",
    1: "大致晴朗",
    2: "晴時多雲",
    3: "陰天",
    45: "有霧",
    48: "有霧",
    51: "毛毛雨",
    53: "毛毛雨",
    55: "毛毛雨",
    56: "毛毛雨",
    57: "毛毛雨",
    61: "降雨",
    63: "降雨",
    65: "降雨",
    66: "降雨",
    67: "降雨",
    71: "降雪",
    73: "降雪",
    75: "降雪",
    77: "降雪",
    80: "陣雨",
    81: "陣雨",
    82: "陣雨",
    85: "陣雪",
    86: "陣雪",
    95: "雷雨",
    96: "雷雨",
    99: "雷雨",
}

_EN_GROUPS = (
    ((0,), "Clear sky"),
    ((1,), "Mainly clear"),
    ((2,), "Partly cloudy"),
    ((3,), "Overcast"),
    ((45, 48), "Fog"),
    ((51, 53, 55, 56, 57), "Drizzle"),
    ((61, 63, 65, 66, 67), "Rain"),
    ((71, 73, 75, 77), "Snow"),
    ((80, 81, 82), "Rain showers"),
    ((85, 86), "Snow showers"),
    ((95, 96, 99), "Thunderstorm"),
)
_EN_SUMMARIES = {code: text for codes, text in _EN_GROUPS for code in codes}

UNKNOWN_SUMMARY = {"zh": "天氣狀態未知", "en": "Unknown conditions"}


def summary_for(code: int, lang: str = "zh") -> str:
    """Describe a weather code in ``zh`` (default) or ``en``."""
    if lang == "en":
        return _EN_SUMMARIES.get(code, UNKNOWN_SUMMARY["en"])
    return _ZH_SUMMARIES.get(code, UNKNOWN_SUMMARY["zh"])
