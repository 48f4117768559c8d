"""
Protocol constants for the ECP control and discovery surfaces
"""

DEFAULT_ECP_PORT = 8060

# Logical key name -> wire key token
KEY_COMMANDS = {
    "home": "Home",
    "reverse": "Rev",
    "forward": "Fwd",
    "play": "Play",
    "select": "Select",
    "left": "Left",
    "right": "Right",
    "down": "Down",
    "up": "Up",
    "back": "Back",
    "replay": "InstantReplay",
    "info": "Info",
    "backspace": "Backspace",
    "search": "Search",
    "enter": "Enter",
    "literal": "Lit",
    "find_remote": "FindRemote",
    "volume_down": "VolumeDown",
    "volume_up": "VolumeUp",
    "volume_mute": "VolumeMute",
    "channel_up": "ChannelUp",
    "channel_down": "ChannelDown",
    "input_tuner": "InputTuner",
    "input_hdmi1": "InputHDMI1",
    "input_hdmi2": "InputHDMI2",
    "input_hdmi3": "InputHDMI3",
    "input_hdmi4": "InputHDMI4",
    "input_av1": "InputAV1",
    "power": "Power",
    "poweroff": "PowerOff",
    "poweron": "PowerOn",
}

# Keys that have their own client methods and cannot go through key dispatch
NON_KEY_COMMANDS = ("literal", "search")

KEY_STATES = ("keydown", "keyup")

SENSOR_TYPES = ("acceleration", "magnetic", "orientation", "rotation")

TOUCH_ACTIONS = ("up", "down", "press", "move", "cancel")

# App id of the channel store
STORE_APP_ID = "11"
TV_INPUT_APP_ID = "tvinput.dtv"

# SSDP
SSDP_GROUP = "239.255.255.250"
SSDP_PORT = 1900
SSDP_MX = 3
ST_ECP = "roku:ecp"
ST_DIAL = "urn:dial-multiscreen-org:service:dial:1"
