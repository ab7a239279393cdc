# urbanglow/constants.py
"""
UrbanGlow Constants and Default Configuration
Asset identifiers, band names and visualization defaults for the
VIIRS Nighttime Lights + Open Buildings Temporal animation.
"""

# Earth Engine asset identifiers
ASSETS = {
    "lights_v21": "NOAA/VIIRS/DNB/ANNUAL_V21",   # 2013-2021
    "lights_v22": "NOAA/VIIRS/DNB/ANNUAL_V22",   # 2022 onward
    "buildings": "GOOGLE/Research/open-buildings-temporal/v1",
}

# V22 takes over from V21 starting with this year
LIGHTS_CUTOVER_YEAR = 2022

LIGHTS_BAND = "average"
BUILDINGS_BAND = "building_presence"

# Open Buildings Temporal keys each annual slice by this property
BUILDINGS_TIME_PROPERTY = "inference_time_epoch_s"

# The buildings keys are computed against June 30 in Pacific time
ANCHOR_MONTH = 6
ANCHOR_DAY = 30
ANCHOR_TIMEZONE = "America/Los_Angeles"

# All animation years
YEARS_ALL = list(range(2016, 2024))  # 8 years: 2016, 2017, ..., 2023

# Model parameters
DETECTION_THRESHOLD = 0.34   # Confidence threshold for building detection
INFLATION_RADIUS_M = 30      # Buffer radius in meters for visualization

# Visualization parameters
LIGHTS_VIS = {
    "min": 0.5,
    "max": 60,
    "palette": ["black", "blue", "purple", "orange", "white"],
}

BUILDINGS_VIS = {
    "min": 0,
    "max": 1,
    "palette": ["#39FF14"],  # Neon Green
}

# Export settings
EXPORT_CONFIG = {
    "name": "Urbanization_Growth",
    "fps": 3,                    # Playback speed
    "seconds_per_year": 1.0,
    "freeze_seconds": 4 / 3,     # Holds the final year for 4 frames at 3 fps
    "dimensions": 1080,          # Video dimension
    "max_pixels": 1e13,
}

# Earth Engine task descriptions are limited to these characters
EXPORT_NAME_ALLOWED = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.,:;_-")
EXPORT_NAME_MAX_LEN = 100

# Substrings that mark a retryable Earth Engine error
RATE_LIMIT_MARKERS = ("429", "rate", "rateexceeded", "quota", "too many requests", "resourceexhausted")
