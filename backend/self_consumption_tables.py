"""
SolarQuote — Banded Self-Consumption Table
Fraction of PV generation used on site, indexed by
occupancy → annual consumption band → annual generation row → battery size.

Shape follows the MCS self-consumption lookup (one sheet per occupancy
archetype). Covers demand and generation up to 6000 kWh/yr; outside that the
heuristic curve in self_consumption.py is used instead.
"""

BATTERY_COLUMNS_KWH = (0.0, 2.5, 5.0, 7.5, 10.0)

GENERATION_ROWS_KWH = (
    (0, 1499),
    (1500, 2499),
    (2500, 3499),
    (3500, 4499),
    (4500, 6000),
)


def _band(min_kwh, max_kwh, fractions):
    return {
        "min_kwh": min_kwh,
        "max_kwh": max_kwh,
        "rows": [
            {"gen_min": lo, "gen_max": hi, "fractions": dict(zip(BATTERY_COLUMNS_KWH, row))}
            for (lo, hi), row in zip(GENERATION_ROWS_KWH, fractions)
        ],
    }


SELF_CONSUMPTION_TABLE = {
    "home_all_day": {
        "bands": [
            _band(1500, 2499, [
                (0.56, 0.82, 0.90, 0.92, 0.93),
                (0.33, 0.52, 0.60, 0.63, 0.65),
                (0.27, 0.41, 0.47, 0.50, 0.51),
                (0.24, 0.34, 0.39, 0.41, 0.42),
                (0.20, 0.28, 0.32, 0.34, 0.35),
            ]),
            _band(2500, 3499, [
                (0.62, 0.88, 0.93, 0.95, 0.95),
                (0.43, 0.66, 0.75, 0.78, 0.80),
                (0.33, 0.53, 0.62, 0.65, 0.67),
                (0.29, 0.46, 0.54, 0.57, 0.58),
                (0.26, 0.39, 0.45, 0.48, 0.49),
            ]),
            _band(3500, 4499, [
                (0.65, 0.90, 0.94, 0.95, 0.95),
                (0.50, 0.74, 0.83, 0.86, 0.88),
                (0.41, 0.62, 0.71, 0.74, 0.76),
                (0.34, 0.54, 0.63, 0.66, 0.68),
                (0.30, 0.47, 0.55, 0.58, 0.60),
            ]),
            _band(4500, 6000, [
                (0.68, 0.91, 0.95, 0.95, 0.95),
                (0.55, 0.78, 0.87, 0.90, 0.91),
                (0.46, 0.68, 0.77, 0.80, 0.82),
                (0.40, 0.60, 0.69, 0.72, 0.74),
                (0.34, 0.53, 0.62, 0.65, 0.67),
            ]),
        ],
    },
    "half_day": {
        "bands": [
            _band(1500, 2499, [
                (0.45, 0.78, 0.88, 0.91, 0.92),
                (0.25, 0.48, 0.58, 0.62, 0.64),
                (0.19, 0.36, 0.44, 0.47, 0.49),
                (0.15, 0.29, 0.35, 0.38, 0.39),
                (0.12, 0.23, 0.28, 0.30, 0.31),
            ]),
            _band(2500, 3499, [
                (0.50, 0.84, 0.92, 0.94, 0.95),
                (0.34, 0.62, 0.73, 0.77, 0.79),
                (0.25, 0.49, 0.60, 0.64, 0.66),
                (0.21, 0.41, 0.51, 0.55, 0.57),
                (0.17, 0.33, 0.41, 0.44, 0.46),
            ]),
            _band(3500, 4499, [
                (0.53, 0.86, 0.93, 0.95, 0.95),
                (0.40, 0.70, 0.81, 0.85, 0.87),
                (0.32, 0.58, 0.69, 0.73, 0.75),
                (0.26, 0.50, 0.61, 0.65, 0.67),
                (0.21, 0.42, 0.52, 0.56, 0.58),
            ]),
            _band(4500, 6000, [
                (0.55, 0.88, 0.94, 0.95, 0.95),
                (0.44, 0.74, 0.85, 0.88, 0.90),
                (0.37, 0.64, 0.75, 0.79, 0.81),
                (0.31, 0.56, 0.67, 0.71, 0.73),
                (0.26, 0.50, 0.61, 0.65, 0.67),
            ]),
        ],
    },
    "out_all_day": {
        "bands": [
            _band(1500, 2499, [
                (0.30, 0.72, 0.85, 0.89, 0.91),
                (0.18, 0.44, 0.55, 0.59, 0.61),
                (0.14, 0.33, 0.42, 0.45, 0.47),
                (0.12, 0.27, 0.34, 0.37, 0.38),
                (0.10, 0.21, 0.27, 0.29, 0.30),
            ]),
            _band(2500, 3499, [
                (0.33, 0.79, 0.90, 0.93, 0.94),
                (0.23, 0.57, 0.70, 0.75, 0.77),
                (0.18, 0.45, 0.57, 0.62, 0.64),
                (0.15, 0.38, 0.48, 0.52, 0.54),
                (0.13, 0.31, 0.39, 0.42, 0.44),
            ]),
            _band(3500, 4499, [
                (0.35, 0.82, 0.92, 0.94, 0.95),
                (0.26, 0.64, 0.77, 0.82, 0.84),
                (0.21, 0.53, 0.66, 0.71, 0.73),
                (0.18, 0.46, 0.58, 0.62, 0.64),
                (0.15, 0.38, 0.48, 0.52, 0.54),
            ]),
            _band(4500, 6000, [
                (0.37, 0.84, 0.93, 0.95, 0.95),
                (0.29, 0.69, 0.81, 0.86, 0.88),
                (0.24, 0.59, 0.71, 0.76, 0.78),
                (0.21, 0.51, 0.63, 0.68, 0.70),
                (0.18, 0.45, 0.56, 0.60, 0.62),
            ]),
        ],
    },
}
