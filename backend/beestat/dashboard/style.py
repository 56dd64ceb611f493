GUTTER = 16
BORDER_RADIUS = "4px"

FONT_WEIGHT_LIGHT = 200
FONT_WEIGHT_BOLD = 600

COLOR = {
    "gray_light": "#bdc3c7",
    "gray_base": "#95a5a6",
    "blue_light": "#45aaf2",
    "blue_base": "#2d98da",
    "orange_base": "#fa8231",
    "red_base": "#eb3b5a",
    "bluegray_light": "#37474f",
    "bluegray_base": "#2f3d44",
    "bluegray_dark": "#263238",
}

# Circle behind the temperature; picked per thermostat id so each one keeps its color.
THERMOSTAT_COLORS = (
    "#20bf6b",
    "#2d98da",
    "#8854d0",
    "#fa8231",
    "#eb3b5a",
    "#0fb9b1",
)


def thermostat_color(thermostat_id: int) -> str:
    return THERMOSTAT_COLORS[thermostat_id % len(THERMOSTAT_COLORS)]
