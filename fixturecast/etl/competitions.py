"""Featured competitions (API-Football league IDs)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Competition:
    """Competition configuration."""

    league_id: int
    name: str
    country: str


PREMIER_LEAGUE = Competition(league_id=39, name="Premier League", country="England")
CHAMPIONSHIP = Competition(league_id=40, name="Championship", country="England")
LEAGUE_ONE = Competition(league_id=41, name="League One", country="England")
LEAGUE_TWO = Competition(league_id=42, name="League Two", country="England")
FA_CUP = Competition(league_id=45, name="FA Cup", country="England")
LEAGUE_CUP = Competition(league_id=48, name="League Cup", country="England")
LIGUE_1 = Competition(league_id=61, name="Ligue 1", country="France")
BUNDESLIGA = Competition(league_id=78, name="Bundesliga", country="Germany")
EREDIVISIE = Competition(league_id=88, name="Eredivisie", country="Netherlands")
PRIMEIRA_LIGA = Competition(league_id=94, name="Primeira Liga", country="Portugal")
SERIE_A = Competition(league_id=135, name="Serie A", country="Italy")
LA_LIGA = Competition(league_id=140, name="La Liga", country="Spain")
SCOTTISH_PREMIERSHIP = Competition(league_id=179, name="Premiership", country="Scotland")
BRASILEIRAO = Competition(league_id=71, name="Serie A", country="Brazil")
LIGA_PROFESIONAL = Competition(league_id=128, name="Liga Profesional Argentina", country="Argentina")
CHAMPIONS_LEAGUE = Competition(league_id=2, name="UEFA Champions League", country="World")
EUROPA_LEAGUE = Competition(league_id=3, name="UEFA Europa League", country="World")

# Allow-list order is the order featured fixtures are unioned in
FEATURED_COMPETITIONS: list[Competition] = [
    PREMIER_LEAGUE,
    CHAMPIONSHIP,
    LEAGUE_ONE,
    LEAGUE_TWO,
    FA_CUP,
    LEAGUE_CUP,
    LIGUE_1,
    BUNDESLIGA,
    EREDIVISIE,
    PRIMEIRA_LIGA,
    SERIE_A,
    LA_LIGA,
    SCOTTISH_PREMIERSHIP,
    BRASILEIRAO,
    LIGA_PROFESIONAL,
    CHAMPIONS_LEAGUE,
    EUROPA_LEAGUE,
]

FEATURED_LEAGUE_IDS: list[int] = [comp.league_id for comp in FEATURED_COMPETITIONS]

_FEATURED_SET = frozenset(FEATURED_LEAGUE_IDS)


def is_featured(league_id: int) -> bool:
    return league_id in _FEATURED_SET
