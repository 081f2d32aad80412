"""
Reference lists: callsign prefixes, facilities, waypoints, SIDs, STARs and
special squawk codes.
"""

from typing import Dict, List

PHILIPPINE_CALLSIGNS: List[str] = [
    "PAL", "CEB", "APG", "AXC", "RPC", "SRQ", "GAP", "AIQ", "RYA", "SEA",
]

INTERNATIONAL_CALLSIGNS: List[str] = [
    "UAE", "SIA", "CPA", "KAL", "JAL", "ANA", "EVA", "CAL", "MAS", "THA",
    "QTR", "ETH", "SWR", "BAW", "AFR", "KLM", "DLH", "UAL", "AAL", "DAL",
    "FDX", "UPS", "GTI", "CLX", "ABW", "MXD", "CSN", "CES", "HVN", "VJC",
]

KNOWN_CALLSIGNS: List[str] = PHILIPPINE_CALLSIGNS + INTERNATIONAL_CALLSIGNS

FACILITIES: List[str] = [
    "Manila Approach", "Manila Departure", "Manila Tower", "Manila Ground",
    "Cebu Approach", "Cebu Tower", "Cebu Ground",
    "Clark Approach", "Clark Tower",
    "Davao Approach", "Davao Tower",
    "Iloilo Approach", "Iloilo Tower",
    "Kalibo Approach", "Kalibo Tower",
    "Puerto Princesa Approach",
    "Manila Control", "Cebu Control",
]

WAYPOINTS: List[str] = [
    "BOREG", "ELBIS", "GUAVA", "PANAS", "RENAS", "TAVER", "AKLAN", "LUBANG",
    "NINOY", "SUBIC", "TALON", "OSIAS", "CAPIN", "MAPLA", "ERLAS", "TAROS",
    "MACTA", "BANAT", "MASBA", "LINOG", "UBINA", "TOROD", "POLOG",
    "BOHOL", "PANAY", "SAMAR", "LEYTE", "BATAN", "SANGA", "DAVAO",
]

SIDS: List[str] = [
    "BOREG1A", "BOREG1B", "BOREG1C",
    "ELBIS1A", "ELBIS1B", "ELBIS2A",
    "GUAVA1A", "GUAVA2A", "GUAVA3A",
    "PANAS1A", "PANAS1B", "PANAS2A",
    "RENAS1A", "RENAS2A", "RENAS3A",
    "TAVER1A", "TAVER1B", "TAVER2A",
    "LUBANG1", "LUBANG2", "LUBANG3",
    "MACTA1", "MACTA2", "BANAT1", "MASBA1",
]

STARS: List[str] = [
    "AKLAN1A", "AKLAN2A", "AKLAN3A",
    "LUBANG1A", "LUBANG2A", "LUBANG3A",
    "NINOY1A", "NINOY2A", "NINOY1B",
    "TAVER1A", "TAVER2A", "TAVER3A",
    "OSIAS1A", "OSIAS2A",
    "SUBIC1A", "SUBIC2A",
    "LINOG1", "UBINA1", "TOROD1", "POLOG1",
]

SPECIAL_SQUAWK_CODES: Dict[str, str] = {
    "7500": "Unlawful interference",
    "7600": "Radio communication failure",
    "7700": "Emergency",
}
