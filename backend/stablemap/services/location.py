"""
Headquarters / country / region inference from free text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple


@dataclass(frozen=True)
class Location:
    headquarters: str
    country: Optional[str]
    region: str


# Ordered: specific places must precede the broader patterns they overlap with
# (Hong Kong before China, New Jersey/Georgia before the countries of that name).
COUNTRY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
    (country, re.compile(pattern, re.IGNORECASE))
    for country, pattern in (
        ("Hong Kong", r"\bhong kong\b"),
        ("UAE", r"\b(united arab emirates|uae|dubai|abu dhabi)\b"),
        ("USA", r"\b(united states|usa|u\.s\.a?\.?|(?-i:US)|new york|nyc|san francisco|boston|chicago|miami"
                r"|austin|seattle|los angeles|silicon valley|palo alto|menlo park|mountain view|denver|atlanta"
                r"|washington,? d\.?c\.?|charlotte|dallas|houston|salt lake city|wilmington|new jersey|delaware"
                r"|california|texas|florida|massachusetts|illinois|colorado|utah|wyoming|nevada|georgia)\b"),
        ("Canada", r"\b(canada|toronto|vancouver|montreal|ottawa|calgary|ontario|quebec)\b"),
        ("Mexico", r"\b(mexico city|mexico|guadalajara|monterrey)\b"),
        ("Brazil", r"\b(brazil|brasil|s[aã]o paulo|rio de janeiro)\b"),
        ("Argentina", r"\b(argentina|buenos aires)\b"),
        ("Chile", r"\b(chile|santiago)\b"),
        ("Colombia", r"\b(colombia|bogot[aá]|medell[ií]n)\b"),
        ("Peru", r"\b(peru|lima)\b"),
        ("El Salvador", r"\b(el salvador|san salvador)\b"),
        ("Cayman Islands", r"\b(cayman islands|grand cayman)\b"),
        ("Bermuda", r"\bbermuda\b"),
        ("Bahamas", r"\b(bahamas|nassau)\b"),
        ("British Virgin Islands", r"\b(british virgin islands|bvi)\b"),
        ("UK", r"\b(united kingdom|uk|u\.k\.|great britain|britain|england|scotland|wales|london|edinburgh|manchester)\b"),
        ("Ireland", r"\b(ireland|dublin)\b"),
        ("Germany", r"\b(germany|berlin|frankfurt|munich|hamburg|deutschland)\b"),
        ("France", r"\b(france|paris|lyon)\b"),
        ("Netherlands", r"\b(netherlands|holland|amsterdam|rotterdam)\b"),
        ("Belgium", r"\b(belgium|brussels)\b"),
        ("Luxembourg", r"\bluxembourg\b"),
        ("Switzerland", r"\b(switzerland|zurich|z[uü]rich|geneva|zug|basel|lugano)\b"),
        ("Liechtenstein", r"\b(liechtenstein|vaduz)\b"),
        ("Austria", r"\b(austria|vienna)\b"),
        ("Italy", r"\b(italy|milan|rome)\b"),
        ("Spain", r"\b(spain|madrid|barcelona)\b"),
        ("Portugal", r"\b(portugal|lisbon)\b"),
        ("Sweden", r"\b(sweden|stockholm)\b"),
        ("Norway", r"\b(norway|oslo)\b"),
        ("Denmark", r"\b(denmark|copenhagen)\b"),
        ("Finland", r"\b(finland|helsinki)\b"),
        ("Poland", r"\b(poland|warsaw)\b"),
        ("Czech Republic", r"\b(czech republic|czechia|prague)\b"),
        ("Estonia", r"\b(estonia|tallinn)\b"),
        ("Lithuania", r"\b(lithuania|vilnius)\b"),
        ("Malta", r"\bmalta\b"),
        ("Cyprus", r"\b(cyprus|limassol|nicosia)\b"),
        ("Gibraltar", r"\bgibraltar\b"),
        ("Ukraine", r"\b(ukraine|kyiv|kiev)\b"),
        ("Turkey", r"\b(turkey|t[uü]rkiye|istanbul)\b"),
        ("Israel", r"\b(israel|tel aviv|jerusalem)\b"),
        ("Saudi Arabia", r"\b(saudi arabia|riyadh)\b"),
        ("Bahrain", r"\b(bahrain|manama)\b"),
        ("Qatar", r"\b(qatar|doha)\b"),
        ("Nigeria", r"\b(nigeria|lagos|abuja)\b"),
        ("Kenya", r"\b(kenya|nairobi)\b"),
        ("South Africa", r"\b(south africa|johannesburg|cape town)\b"),
        ("Egypt", r"\b(egypt|cairo)\b"),
        ("Singapore", r"\bsingapore\b"),
        ("Japan", r"\b(japan|tokyo|osaka)\b"),
        ("South Korea", r"\b(south korea|korea|seoul)\b"),
        ("China", r"\b(china|beijing|shanghai|shenzhen|prc)\b"),
        ("Taiwan", r"\b(taiwan|taipei)\b"),
        ("India", r"\b(india|mumbai|bangalore|bengaluru|new delhi|delhi)\b"),
        ("Australia", r"\b(australia|sydney|melbourne|brisbane|perth)\b"),
        ("New Zealand", r"\b(new zealand|auckland|wellington)\b"),
        ("Thailand", r"\b(thailand|bangkok)\b"),
        ("Indonesia", r"\b(indonesia|jakarta)\b"),
        ("Philippines", r"\b(philippines|manila)\b"),
        ("Vietnam", r"\b(vietnam|hanoi|ho chi minh)\b"),
        ("Malaysia", r"\b(malaysia|kuala lumpur)\b"),
    )
)

REGION_BY_COUNTRY: Dict[str, str] = {
    "USA": "North America",
    "Canada": "North America",
    "Bermuda": "North America",
    # EU member states
    **{c: "EU" for c in (
        "Germany", "France", "Netherlands", "Belgium", "Luxembourg", "Austria", "Italy", "Spain",
        "Portugal", "Sweden", "Denmark", "Finland", "Poland", "Czech Republic", "Estonia",
        "Lithuania", "Malta", "Cyprus", "Ireland",
    )},
    # Europe outside the EU
    **{c: "Europe" for c in ("UK", "Switzerland", "Liechtenstein", "Norway", "Gibraltar", "Ukraine", "Turkey")},
    **{c: "APAC" for c in (
        "Hong Kong", "Singapore", "Japan", "South Korea", "China", "Taiwan", "India", "Australia",
        "New Zealand", "Thailand", "Indonesia", "Philippines", "Vietnam", "Malaysia",
    )},
    **{c: "LATAM" for c in (
        "Mexico", "Brazil", "Argentina", "Chile", "Colombia", "Peru", "El Salvador",
        "Cayman Islands", "Bahamas", "British Virgin Islands",
    )},
    **{c: "MEA" for c in (
        "UAE", "Israel", "Saudi Arabia", "Bahrain", "Qatar", "Nigeria", "Kenya", "South Africa", "Egypt",
    )},
}

US_STATES = (
    "alabama", "alaska", "arizona", "arkansas", "california", "colorado", "connecticut", "delaware",
    "florida", "georgia", "hawaii", "idaho", "illinois", "indiana", "iowa", "kansas", "kentucky",
    "louisiana", "maine", "maryland", "massachusetts", "michigan", "minnesota", "mississippi",
    "missouri", "montana", "nebraska", "nevada", "new hampshire", "new jersey", "new mexico",
    "new york", "north carolina", "north dakota", "ohio", "oklahoma", "oregon", "pennsylvania",
    "rhode island", "south carolina", "south dakota", "tennessee", "texas", "utah", "vermont",
    "virginia", "washington", "west virginia", "wisconsin", "wyoming", "dc", "d.c.",
    "ny", "ca", "tx", "fl", "ma", "il", "wa", "co", "nj",
)

# Closed list of names allowed as an appended ", Suffix" after a city
KNOWN_PLACE_SUFFIXES = frozenset(
    {c.lower() for c in REGION_BY_COUNTRY}
    | set(US_STATES)
    | {
        "united states", "united kingdom", "england", "scotland", "the netherlands", "korea",
        "uae", "united arab emirates", "us", "usa", "uk", "switzerland", "germany", "canada",
        "ontario", "quebec", "british columbia", "new south wales", "victoria",
    }
)

HQ_TRIGGERS: Tuple[Pattern[str], ...] = (
    re.compile(r"\bheadquartered in\s+([A-Z][^,.;:()\n]{1,60})"),
    re.compile(r"\bheadquarters (?:is |are )?(?:located )?in\s+([A-Z][^,.;:()\n]{1,60})"),
    re.compile(r"\bbased in\s+([A-Z][^,.;:()\n]{1,60})"),
    re.compile(r"\b([A-Z][A-Za-z]+(?: [A-Z][A-Za-z]+){0,2})-based\b"),
)

CONNECTIVE_RE = re.compile(
    r"\s+(and|with|that|which|where|who|since|for|to|as|but|while|is|was|has|had|its|the|in|on|at|by|from|of|"
    r"offers|provides|operates|serving|founded)\b.*$",
)

_SUFFIX_RE = re.compile(r"^\s*,\s*([A-Za-z][^,.;:()\n]{1,40})")

# "U.S." / "U.K." contain periods that would otherwise end the clause
_ABBREVIATIONS = (
    (re.compile(r"\bU\.S\.A\.?"), "USA"),
    (re.compile(r"\bU\.S\.(?=\W|$)"), "US"),
    (re.compile(r"\bU\.K\.(?=\W|$)"), "UK"),
    (re.compile(r"\bWashington,? D\.C\.?"), "Washington DC"),
)


def _expand_abbreviations(text: str) -> str:
    for pattern, replacement in _ABBREVIATIONS:
        text = pattern.sub(replacement, text)
    return text


def _trim_connectives(value: str) -> str:
    value = re.sub(r"^(The|A|An)\s+", "", value.strip())
    return CONNECTIVE_RE.sub("", value).strip(" -'\"")


def _known_suffix(after: str) -> Optional[str]:
    match = _SUFFIX_RE.match(after)
    if not match:
        return None
    candidate = _trim_connectives(match.group(1).strip())
    words = candidate.split()
    # Try the longest leading run of words first ("New South Wales" before "New")
    for n in range(min(len(words), 4), 0, -1):
        piece = " ".join(words[:n])
        if piece.lower() in KNOWN_PLACE_SUFFIXES:
            return piece
    return None


def extract_headquarters(text: str) -> Optional[str]:
    text = _expand_abbreviations(text or "")
    for trigger in HQ_TRIGGERS:
        match = trigger.search(text)
        if not match:
            continue
        city = _trim_connectives(match.group(1).strip())
        if not city or not city[0].isupper():
            continue
        suffix = _known_suffix(text[match.end(1):])
        if suffix and suffix.lower() != city.lower():
            return f"{city}, {suffix}"
        return city
    return None


def infer_country(headquarters: Optional[str], text: str = "") -> Optional[str]:
    """Headquarters string first (higher precision), then the full text."""
    for haystack in (headquarters or "", text or ""):
        if not haystack:
            continue
        haystack = _expand_abbreviations(haystack)
        for country, pattern in COUNTRY_PATTERNS:
            if pattern.search(haystack):
                return country
    return None


def region_for_country(country: Optional[str]) -> str:
    if not country:
        return "Global"
    return REGION_BY_COUNTRY.get(country, "Global")


def extract_location_from_text(text: str) -> Location:
    headquarters = extract_headquarters(text)
    country = infer_country(headquarters, text)
    if not headquarters:
        headquarters = country or "Remote"
    return Location(headquarters=headquarters, country=country, region=region_for_country(country))
