"""Static constants and helpers for Ontario location normalization."""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from .geo import Coordinates

# Appended to free-text lookups so same-named places elsewhere don't win.
REGION_QUALIFIER = 'Ontario, Canada'
COUNTRY_CODE = 'ca'
POSTAL_CODE_QUALIFIER = 'Canada'

# Canadian postal code with whitespace removed: letter digit letter digit letter digit.
POSTAL_CODE_RE = re.compile(r'^[A-Za-z]\d[A-Za-z]\d[A-Za-z]\d$')
_WHITESPACE_RE = re.compile(r'\s+')

# Forward Sortation Area (first three characters of a postal code) to an
# approximate centroid. Covers the populated Ontario FSAs; anything missing
# falls through to the external geocoder.
FSA_CENTROIDS: Dict[str, Tuple[float, float]] = {
    # Toronto
    'M1B': (43.8067, -79.1944), 'M1C': (43.7845, -79.1605), 'M1E': (43.7636, -79.1887),
    'M1G': (43.7710, -79.2169), 'M1H': (43.7731, -79.2395), 'M1J': (43.7447, -79.2395),
    'M1K': (43.7279, -79.2620), 'M1L': (43.7111, -79.2846), 'M1M': (43.7163, -79.2395),
    'M1N': (43.6927, -79.2648), 'M1P': (43.7574, -79.2733), 'M1R': (43.7501, -79.2958),
    'M1S': (43.7942, -79.2620), 'M1T': (43.7816, -79.3043), 'M1V': (43.8153, -79.2846),
    'M1W': (43.7995, -79.3184), 'M1X': (43.8361, -79.2056),
    'M2H': (43.8038, -79.3635), 'M2J': (43.7785, -79.3466), 'M2K': (43.7869, -79.3860),
    'M2L': (43.7575, -79.3747), 'M2M': (43.7891, -79.4085), 'M2N': (43.7701, -79.4085),
    'M2P': (43.7528, -79.4000), 'M2R': (43.7827, -79.4423),
    'M3A': (43.7533, -79.3297), 'M3B': (43.7459, -79.3522), 'M3C': (43.7259, -79.3409),
    'M3H': (43.7543, -79.4423), 'M3J': (43.7680, -79.4873), 'M3K': (43.7375, -79.4648),
    'M3L': (43.7390, -79.5069), 'M3M': (43.7285, -79.4957), 'M3N': (43.7616, -79.5210),
    'M4A': (43.7259, -79.3156), 'M4B': (43.7064, -79.3099), 'M4C': (43.6953, -79.3184),
    'M4E': (43.6764, -79.2930), 'M4G': (43.7091, -79.3635), 'M4H': (43.7054, -79.3494),
    'M4J': (43.6853, -79.3381), 'M4K': (43.6796, -79.3522), 'M4L': (43.6690, -79.3156),
    'M4M': (43.6595, -79.3409), 'M4N': (43.7280, -79.3888), 'M4P': (43.7128, -79.3902),
    'M4R': (43.7154, -79.4057), 'M4S': (43.7043, -79.3888), 'M4T': (43.6896, -79.3832),
    'M4V': (43.6864, -79.4000), 'M4W': (43.6796, -79.3775), 'M4X': (43.6680, -79.3677),
    'M4Y': (43.6659, -79.3832),
    'M5A': (43.6543, -79.3606), 'M5B': (43.6572, -79.3789), 'M5C': (43.6515, -79.3754),
    'M5E': (43.6448, -79.3733), 'M5G': (43.6580, -79.3874), 'M5H': (43.6506, -79.3846),
    'M5J': (43.6408, -79.3818), 'M5K': (43.6472, -79.3816), 'M5L': (43.6482, -79.3798),
    'M5M': (43.7333, -79.4198), 'M5N': (43.7117, -79.4169), 'M5P': (43.6969, -79.4113),
    'M5R': (43.6727, -79.4057), 'M5S': (43.6627, -79.4000), 'M5T': (43.6532, -79.4000),
    'M5V': (43.6289, -79.3944), 'M5W': (43.6464, -79.3748), 'M5X': (43.6484, -79.3823),
    'M6A': (43.7185, -79.4648), 'M6B': (43.7096, -79.4451), 'M6C': (43.6938, -79.4282),
    'M6E': (43.6890, -79.4535), 'M6G': (43.6695, -79.4226), 'M6H': (43.6690, -79.4423),
    'M6J': (43.6479, -79.4198), 'M6K': (43.6368, -79.4282), 'M6L': (43.7138, -79.4901),
    'M6M': (43.6911, -79.4760), 'M6N': (43.6732, -79.4873), 'M6P': (43.6616, -79.4648),
    'M6R': (43.6490, -79.4563), 'M6S': (43.6516, -79.4845),
    'M7A': (43.6623, -79.3895), 'M7R': (43.6370, -79.6158), 'M7Y': (43.6627, -79.3216),
    'M8V': (43.6056, -79.5013), 'M8W': (43.6024, -79.5435), 'M8X': (43.6537, -79.5069),
    'M8Y': (43.6363, -79.4985), 'M8Z': (43.6288, -79.5210),
    'M9A': (43.6679, -79.5322), 'M9B': (43.6509, -79.5547), 'M9C': (43.6435, -79.5772),
    'M9L': (43.7563, -79.5660), 'M9M': (43.7248, -79.5322), 'M9N': (43.7069, -79.5182),
    'M9P': (43.6963, -79.5322), 'M9R': (43.6889, -79.5547), 'M9V': (43.7394, -79.5884),
    'M9W': (43.7067, -79.5941),
    # Ottawa
    'K1A': (45.4215, -75.6972), 'K1B': (45.4168, -75.5893), 'K1C': (45.4745, -75.5097),
    'K1E': (45.4798, -75.4815), 'K1G': (45.4003, -75.6280), 'K1H': (45.3952, -75.6657),
    'K1J': (45.4394, -75.6159), 'K1K': (45.4387, -75.6489), 'K1L': (45.4415, -75.6696),
    'K1M': (45.4483, -75.6818), 'K1N': (45.4279, -75.6887), 'K1P': (45.4213, -75.6988),
    'K1R': (45.4103, -75.7133), 'K1S': (45.3999, -75.6858), 'K1T': (45.3524, -75.6274),
    'K1V': (45.3632, -75.6686), 'K1W': (45.4441, -75.5584), 'K1X': (45.3242, -75.6236),
    'K1Y': (45.4001, -75.7302), 'K1Z': (45.3905, -75.7413), 'K2A': (45.3772, -75.7666),
    'K2B': (45.3583, -75.7902), 'K2C': (45.3537, -75.7402), 'K2E': (45.3379, -75.7133),
    'K2G': (45.3379, -75.7505), 'K2H': (45.3397, -75.7995), 'K2J': (45.2743, -75.7435),
    'K2K': (45.3479, -75.9245), 'K2L': (45.3046, -75.9058), 'K2M': (45.2880, -75.8659),
    'K2P': (45.4138, -75.6939), 'K2R': (45.3047, -75.7895), 'K2S': (45.2687, -75.9232),
    'K2T': (45.3337, -75.8922), 'K2V': (45.3001, -75.9296), 'K2W': (45.3687, -75.9558),
    # Eastern Ontario
    'K6H': (45.0213, -74.7303), 'K6J': (45.0301, -74.7626), 'K6K': (45.0269, -74.6903),
    'K6V': (44.5900, -75.6900), 'K7K': (44.2476, -76.4698), 'K7L': (44.2312, -76.4860),
    'K7M': (44.2366, -76.5394), 'K7P': (44.2596, -76.5874), 'K8A': (45.8200, -77.1100),
    'K8N': (44.1628, -77.3832), 'K8P': (44.1755, -77.4131), 'K9A': (43.9600, -78.1700),
    'K9H': (44.3091, -78.3197), 'K9J': (44.2906, -78.3505), 'K9K': (44.3232, -78.3772),
    # Durham
    'L1G': (43.9000, -78.8500), 'L1H': (43.8800, -78.8400), 'L1J': (43.8900, -78.8800),
    'L1K': (43.9300, -78.8500), 'L1L': (43.9500, -78.8900), 'L1M': (43.9400, -78.9500),
    'L1N': (43.8700, -78.9300), 'L1P': (43.8900, -78.9700), 'L1R': (43.9200, -78.9300),
    'L1S': (43.8500, -79.0300), 'L1T': (43.8600, -79.0500), 'L1V': (43.8200, -79.1000),
    'L1W': (43.8100, -79.0600), 'L1X': (43.8500, -79.1000), 'L1Y': (43.8600, -79.1400),
    'L1Z': (43.8800, -79.0100),
    # Niagara
    'L2E': (43.1100, -79.0700), 'L2G': (43.0800, -79.0800), 'L2H': (43.0900, -79.1200),
    'L2J': (43.1300, -79.1000), 'L2M': (43.1900, -79.2400), 'L2N': (43.1800, -79.2700),
    'L2P': (43.1500, -79.2200), 'L2R': (43.1600, -79.2500), 'L2S': (43.1400, -79.2700),
    'L2T': (43.1300, -79.2300), 'L2W': (43.1400, -79.2900),
    # York Region
    'L3P': (43.8700, -79.2600), 'L3R': (43.8500, -79.3300), 'L3S': (43.8300, -79.2700),
    'L3T': (43.8200, -79.3900), 'L3V': (44.6100, -79.4200), 'L3X': (44.0400, -79.4800),
    'L3Y': (44.0500, -79.4600), 'L4B': (43.8500, -79.4000), 'L4C': (43.8800, -79.4400),
    'L4E': (43.9400, -79.4500), 'L4G': (44.0000, -79.4600), 'L4H': (43.8200, -79.5800),
    'L4J': (43.8100, -79.4500), 'L4K': (43.8000, -79.5100), 'L4L': (43.7900, -79.6000),
    'L4S': (43.9000, -79.4200), 'L6A': (43.8500, -79.5200), 'L6B': (43.8800, -79.2300),
    'L6C': (43.8800, -79.3400), 'L6E': (43.9000, -79.2600),
    # Barrie
    'L4M': (44.4000, -79.6700), 'L4N': (44.3600, -79.6900),
    # Mississauga
    'L4T': (43.7100, -79.6500), 'L4W': (43.6400, -79.6200), 'L4X': (43.6150, -79.5750),
    'L4Y': (43.5950, -79.5900), 'L4Z': (43.6150, -79.6550), 'L5A': (43.5950, -79.6150),
    'L5B': (43.5900, -79.6450), 'L5C': (43.5550, -79.6550), 'L5E': (43.5700, -79.5700),
    'L5G': (43.5550, -79.5850), 'L5H': (43.5350, -79.6200), 'L5J': (43.5150, -79.6350),
    'L5K': (43.5350, -79.6800), 'L5L': (43.5450, -79.7050), 'L5M': (43.5750, -79.7150),
    'L5N': (43.5950, -79.7500), 'L5R': (43.6050, -79.6700), 'L5V': (43.6050, -79.7150),
    'L5W': (43.6300, -79.7300),
    # Oakville, Burlington, Milton
    'L6H': (43.4800, -79.7000), 'L6J': (43.4500, -79.6700), 'L6K': (43.4400, -79.6900),
    'L6L': (43.4100, -79.7200), 'L6M': (43.4400, -79.7500), 'L7L': (43.3700, -79.7600),
    'L7M': (43.3800, -79.8100), 'L7N': (43.3500, -79.7800), 'L7P': (43.3400, -79.8400),
    'L7R': (43.3300, -79.8000), 'L7S': (43.3200, -79.8200), 'L7T': (43.3000, -79.8500),
    'L9T': (43.5100, -79.8800),
    # Brampton
    'L6P': (43.7800, -79.6650), 'L6R': (43.7400, -79.7600), 'L6S': (43.7300, -79.7250),
    'L6T': (43.7150, -79.7000), 'L6V': (43.7000, -79.7700), 'L6W': (43.6800, -79.7400),
    'L6X': (43.6800, -79.7900), 'L6Y': (43.6500, -79.7500), 'L6Z': (43.7400, -79.8000),
    'L7A': (43.7100, -79.8200),
    # Hamilton
    'L8E': (43.2222, -79.7040), 'L8G': (43.2167, -79.7600), 'L8H': (43.2467, -79.7770),
    'L8J': (43.1900, -79.7800), 'L8K': (43.2180, -79.7830), 'L8L': (43.2620, -79.8250),
    'L8M': (43.2470, -79.8300), 'L8N': (43.2450, -79.8560), 'L8P': (43.2530, -79.8780),
    'L8R': (43.2610, -79.8700), 'L8S': (43.2590, -79.9100), 'L8T': (43.2140, -79.8450),
    'L8V': (43.2180, -79.8660), 'L8W': (43.1980, -79.8650), 'L9A': (43.2270, -79.8850),
    'L9B': (43.2000, -79.9200), 'L9C': (43.2240, -79.9200), 'L9G': (43.2200, -79.9800),
    'L9H': (43.2700, -79.9500), 'L9K': (43.2250, -79.9800), 'L9Y': (44.5000, -80.2200),
    # Guelph, Waterloo Region, Brantford
    'N1E': (43.5600, -80.2400), 'N1G': (43.5200, -80.2300), 'N1H': (43.5400, -80.2700),
    'N1K': (43.5100, -80.2800), 'N1L': (43.5000, -80.1900), 'N1R': (43.3600, -80.3100),
    'N1S': (43.3500, -80.3300), 'N1T': (43.3900, -80.2900), 'N2A': (43.4500, -80.4200),
    'N2B': (43.4600, -80.4600), 'N2C': (43.4200, -80.4500), 'N2E': (43.4200, -80.4700),
    'N2G': (43.4400, -80.4900), 'N2H': (43.4500, -80.5000), 'N2J': (43.4700, -80.5200),
    'N2K': (43.4900, -80.5000), 'N2L': (43.4700, -80.5400), 'N2M': (43.4400, -80.5100),
    'N2N': (43.4300, -80.5300), 'N2P': (43.4000, -80.4200), 'N2R': (43.3900, -80.4900),
    'N2T': (43.4600, -80.5700), 'N2V': (43.4900, -80.5700), 'N3C': (43.4100, -80.3100),
    'N3E': (43.4200, -80.3600), 'N3H': (43.3900, -80.3500), 'N3R': (43.1600, -80.2600),
    'N3S': (43.1300, -80.2500), 'N3T': (43.1400, -80.2800),
    # Southwestern Ontario
    'N4K': (44.5700, -80.9400), 'N4S': (43.1300, -80.7500), 'N5A': (43.3700, -80.9800),
    'N5V': (43.0300, -81.1900), 'N5W': (42.9900, -81.1900), 'N5X': (43.0300, -81.2700),
    'N5Y': (43.0100, -81.2300), 'N5Z': (42.9700, -81.2200), 'N6A': (42.9900, -81.2500),
    'N6B': (42.9800, -81.2400), 'N6C': (42.9500, -81.2400), 'N6E': (42.9300, -81.2400),
    'N6G': (43.0100, -81.2900), 'N6H': (42.9900, -81.3000), 'N6J': (42.9600, -81.2800),
    'N6K': (42.9400, -81.3100), 'N6L': (42.9100, -81.2800), 'N6M': (42.9300, -81.1800),
    'N6N': (42.9200, -81.2000), 'N6P': (42.9200, -81.3300), 'N7L': (42.4000, -82.2000),
    'N7M': (42.4100, -82.1800), 'N7S': (42.9900, -82.3900), 'N7T': (42.9700, -82.3800),
    'N7V': (43.0000, -82.3500), 'N7W': (42.9600, -82.3400),
    # Windsor
    'N8N': (42.3000, -82.8800), 'N8P': (42.3000, -82.8500), 'N8R': (42.3200, -82.8900),
    'N8S': (42.3300, -82.9500), 'N8T': (42.3100, -82.9600), 'N8W': (42.2800, -82.9800),
    'N8X': (42.2900, -83.0200), 'N8Y': (42.3300, -82.9900), 'N9A': (42.3100, -83.0300),
    'N9B': (42.2900, -83.0600), 'N9C': (42.2800, -83.0800), 'N9E': (42.2500, -83.0200),
    'N9G': (42.2400, -83.0400), 'N9H': (42.2600, -83.0800), 'N9J': (42.2400, -83.1000),
    'N9K': (42.2000, -82.9200),
    # Northern Ontario
    'P1A': (46.3200, -79.4300), 'P1B': (46.3000, -79.4500), 'P1C': (46.3400, -79.4600),
    'P1H': (45.3300, -79.2200), 'P3A': (46.5200, -80.9500), 'P3B': (46.4900, -80.9600),
    'P3C': (46.4900, -81.0000), 'P3E': (46.4700, -81.0000), 'P3G': (46.4100, -80.9700),
    'P3L': (46.6000, -81.1900), 'P3N': (46.6200, -81.0300), 'P3P': (46.6000, -80.8300),
    'P3Y': (46.4700, -81.0900), 'P4N': (48.4750, -81.3300), 'P4P': (48.4600, -81.2900),
    'P4R': (48.5000, -81.3700), 'P5A': (46.3800, -82.6500), 'P6A': (46.5200, -84.3400),
    'P6B': (46.5300, -84.3000), 'P6C': (46.5300, -84.3700), 'P7A': (48.4400, -89.2300),
    'P7B': (48.4200, -89.2600), 'P7C': (48.4000, -89.2800), 'P7E': (48.3800, -89.2600),
    'P7G': (48.4700, -89.2000), 'P7J': (48.3700, -89.3200), 'P7K': (48.3400, -89.3800),
    'P9N': (49.7700, -94.4900),
}


def _compact(value: Optional[str]) -> str:
    return _WHITESPACE_RE.sub('', value or '')


def is_postal_code(value: Optional[str]) -> bool:
    """True if ``value`` matches the Canadian postal code grammar, ignoring whitespace."""
    return bool(POSTAL_CODE_RE.match(_compact(value)))


def normalize_postal_code(value: Optional[str]) -> str:
    """
    Canonicalize a postal code to ``A1A 1A1``.

    Input that doesn't match the grammar is returned trimmed and upper-cased.
    """
    if not is_postal_code(value):
        return (value or '').strip().upper()
    compact = _compact(value).upper()
    return f"{compact[:3]} {compact[3:]}"


def normalize_place_name(value: Optional[str]) -> str:
    """Cache key for a free-text place name."""
    return _WHITESPACE_RE.sub(' ', (value or '').strip()).lower()


def lookup_fsa(postal_code: Optional[str]) -> Optional[Coordinates]:
    """Return the FSA centroid for a postal code, or None outside coverage."""
    normalized = normalize_postal_code(postal_code)
    if len(normalized) < 3:
        return None
    centroid = FSA_CENTROIDS.get(normalized[:3])
    if centroid is None:
        return None
    return Coordinates(*centroid)
