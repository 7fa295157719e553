from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="FITTRACK_", extra="ignore")

    app_name: str = "FitTrack"

    # Source selection: "auto" probes the platform, "live" / "sim" force a mode
    sensor_mode: str = Field(default="auto")

    # Motion panel preference, read when the motion facade starts
    use_simulated_data: bool = True

    # Update cadence (seconds)
    motion_interval_s: float = 1.0 / 60.0
    heading_interval_s: float = 1.0 / 60.0
    sound_interval_s: float = 0.1
    location_interval_s: float = 1.0

    # Rolling history kept per facade (chart window)
    history_size: int = 60

    # Location trail
    location_path_max_points: int = 10_000
    region_span_deg: float = 0.05
    default_latitude: float = 37.334_900
    default_longitude: float = -122.009_020

    # Heading: added to magnetic heading to get true heading when known
    magnetic_declination_deg: Optional[float] = None

    # Sound capture
    recordings_dir: str = Field(default="recordings")
    audio_sample_rate: int = 44100
    audio_channels: int = 1

    # termux-api tools (live motion / heading / location)
    termux_sensor_cmd: str = "termux-sensor"
    termux_location_cmd: str = "termux-location"
    termux_sensor_delay_ms: int = 16
    termux_motion_sensors: str = "accelerometer,gyroscope"
    termux_heading_sensors: str = "orientation"
    termux_probe_timeout_s: float = 15.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "fittrack.log"


settings = Settings()
