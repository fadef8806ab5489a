"""
Configuration for the tinynes machine and its drivers
Command-line flags override these defaults
"""

# Machine defaults
MACHINE_CONFIG = {
    "load_address": 0x8000,  # Where flat programs are copied and the reset vector points
    "max_instructions": 1_000_000,  # Safety budget for runaway programs
    "legacy_opcodes": False,  # Use the first-generation (collapsed) opcode table
}

# Display driver defaults
DISPLAY_CONFIG = {
    "scale": 3,  # 256x240 framebuffer shown at 768x720
    "target_fps": 60,
    "window_title": "tinynes",
    "screenshot_on_exit": False,
}


def machine_settings(**overrides):
    """MACHINE_CONFIG with non-None overrides applied"""
    settings = dict(MACHINE_CONFIG)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return settings


def display_settings(**overrides):
    settings = dict(DISPLAY_CONFIG)
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return settings


def describe_config(settings):
    """Print the active settings"""
    print("Configuration:")
    for key, value in settings.items():
        if key == "load_address":
            value = f"${value:04X}"
        print(f"  {key}: {value}")
