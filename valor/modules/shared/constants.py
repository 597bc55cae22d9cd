"""
Valor Domain Constants

Purpose
-------
Balance tables that define the game's semantics: rank ladder, NPC power
curve, element catalogue, pet tiers, guild level requirements, boost
ceilings. Changing any of these changes game outcomes, so they live in code
rather than in YAML.

IMPORTANT:
Tunable knobs (crit multiplier, auction window, exchange rates) are read
through ConfigManager with these values as fallbacks. Infrastructure
settings belong in valor.core.config.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- Grouped by game system
- No side effects at import time
"""

from __future__ import annotations

from typing import Dict, Final, Optional, Tuple

# ============================================================================
# LEDGER
# ============================================================================

MAX_SAFE: Final[int] = 2**53 - 1

ACCOUNT_CURRENCIES: Final[Tuple[str, ...]] = (
    "gold",
    "rubies",
    "soulShards",
    "focusedShards",
    "trainingPoints",
    "runes",
    "petExp",
)

# Mapping from currency name to the ORM attribute that stores it
CURRENCY_COLUMNS: Final[Dict[str, str]] = {
    "gold": "gold",
    "rubies": "rubies",
    "soulShards": "soul_shards",
    "focusedShards": "focused_shards",
    "trainingPoints": "training_points",
    "runes": "runes",
    "petExp": "pet_exp",
}

# ============================================================================
# ACCOUNT DEFAULTS
# ============================================================================

STAT_NAMES: Final[Tuple[str, ...]] = ("Str", "Def", "Spd", "Int", "Luck", "Pot")
STRENGTH_BASE_STATS: Final[Tuple[str, ...]] = ("Str", "Spd", "Int", "Luck", "Pot")
ITEM_STATS: Final[Tuple[str, ...]] = ("Str", "Int", "Spd", "Luck", "Pot")
PET_STATS: Final[Tuple[str, ...]] = ("Str", "Spd", "Luck", "ElementalPower")

DEFAULT_STATS: Final[Dict[str, int]] = {
    "Str": 10,
    "Def": 10,
    "Spd": 10,
    "Int": 10,
    "Luck": 10,
    "Pot": 0,
}
DEFAULT_GOLD: Final[int] = 10_000
DEFAULT_COMBAT_STAT: Final[int] = 10

EQUIPMENT_SLOTS: Final[Tuple[str, ...]] = ("weapon", "armor", "accessory1", "accessory2")

ROLE_PLAYER: Final[str] = "player"
ROLE_ADMIN: Final[str] = "admin"

# ============================================================================
# RANKS
# ============================================================================

RANKS: Final[Tuple[str, ...]] = (
    "Novice",
    "Apprentice",
    "Journeyman",
    "Expert",
    "Master",
    "Grandmaster",
    "Legend",
    "Elite",
)

# Upper bound of each band of global levels and the rank it requires
RANK_GATES: Final[Tuple[Tuple[int, Optional[str]], ...]] = (
    (100, None),
    (200, "Apprentice"),
    (500, "Journeyman"),
    (1000, "Expert"),
    (2000, "Master"),
    (3000, "Grandmaster"),
    (4000, "Legend"),
)
TOP_RANK_GATE: Final[str] = "Elite"

# Ceiling for a single item stat after boosting
ITEM_BOOST_CEILINGS: Final[Dict[str, int]] = {
    "Novice": 999,
    "Apprentice": 9_999,
    "Journeyman": 99_999,
    "Expert": 999_999,
    "Master": 9_999_999,
    "Grandmaster": 99_999_999,
    "Legend": 999_999_999,
    "Elite": 9_999_999_999,
}

# ============================================================================
# NPC TOWER
# ============================================================================

TOWER_MAX_FLOOR: Final[int] = 50
TOWER_LEVELS_PER_FLOOR: Final[int] = 100
TOWER_BOSS_MULTIPLIER: Final[float] = 1.2

NPC_POWER_TABLE: Final[Tuple[Tuple[int, int], ...]] = (
    (1, 999),
    (999, 99_999),
    (99_999, 9_999_999),
    (9_999_999, 999_999_999),
    (999_999_999, 99_999_999_999),
)
NPC_POWER_GROWTH: Final[int] = 100

BOSS_ABILITIES: Final[Tuple[Tuple[str, str], ...]] = (
    ("Earthquake", "Deals massive earth damage"),
    ("Inferno", "Burns with unquenchable flames"),
    ("Blizzard", "Freezes targets solid"),
    ("Thunder God's Wrath", "Lightning strikes all enemies"),
    ("Void Rupture", "Tears holes in reality"),
    ("Time Warp", "Slows time around enemies"),
    ("Space Fold", "Teleports behind targets"),
    ("Soul Drain", "Absorbs life force"),
    ("Arcane Explosion", "Pure magical destruction"),
    ("Elemental Fury", "Combines multiple elements"),
)

ELEMENTS: Final[Tuple[str, ...]] = (
    "Fire",
    "Water",
    "Earth",
    "Air",
    "Lightning",
    "Ice",
    "Nature",
    "Dark",
    "Light",
    "Arcana",
    "Chrono",
    "Plasma",
    "Void",
    "Aether",
    "Hybrid",
    "Elemental Convergence",
    "Time",
    "Space",
)

IMMUNITY_START_GLOBAL_LEVEL: Final[int] = 101
TOWER_MAX_IMMUNITIES: Final[int] = 5

# Tower rewards, multiplied by global level (runes by floor, bosses only)
TOWER_REWARD_RATES: Final[Dict[str, int]] = {
    "gold": 50,
    "trainingPoints": 10,
    "soulShards": 2,
    "petExp": 100,
}
TOWER_BOSS_RUNES_PER_FLOOR: Final[int] = 10

# ============================================================================
# PVP COMBAT
# ============================================================================

COMBAT_ACTIONS: Final[Tuple[str, ...]] = ("attack", "defend", "dodge", "trick")
ACTION_WEIGHT_STATS: Final[Dict[str, str]] = {
    "attack": "Str",
    "defend": "Def",
    "dodge": "Spd",
    "trick": "Int",
}
COMBAT_BASE_HP: Final[int] = 100
COMBAT_OPENING_LOG: Final[str] = "Combat has begun!"

CHALLENGE_STATUSES: Final[Tuple[str, ...]] = (
    "pending",
    "accepted",
    "declined",
    "cancelled",
    "completed",
)

# ============================================================================
# PETS
# ============================================================================

PET_TIERS: Final[Tuple[str, ...]] = ("egg", "baby", "teen", "adult", "legend", "mythic")

# tier -> (max_exp, evolution gold cost, stat multiplier)
PET_TIER_TABLE: Final[Dict[str, Tuple[Optional[int], Optional[int], int]]] = {
    "egg": (100, 10_000, 1),
    "baby": (500, 50_000, 2),
    "teen": (2_500, 250_000, 4),
    "adult": (10_000, 1_000_000, 8),
    "legend": (100_000, 100_000_000, 16),
    "mythic": (None, None, 32),
}

DEFAULT_PET_STATS: Final[Dict[str, int]] = {
    "Str": 1,
    "Spd": 1,
    "Luck": 1,
    "ElementalPower": 1,
}

PET_MERGE_GOLD_COST: Final[int] = 1_000_000_000

# food -> (exp granted, gold cost)
PET_FOODS: Final[Dict[str, Tuple[int, int]]] = {
    "basic_treat": (10, 100),
    "tasty_snack": (50, 400),
    "gourmet_meal": (200, 1_500),
    "royal_feast": (1_000, 6_000),
    "mystic_elixir": (5_000, 25_000),
    "dragon_essence": (25_000, 100_000),
}
PET_FEED_EXP_MAX: Final[int] = 1_000_000

# ============================================================================
# BOOST EXCHANGE RATES
# ============================================================================

PET_BOOST_SHARDS_PER_POINT: Final[int] = 10
BASE_BOOST_TP_PER_POINT: Final[int] = 1_000
TRAIN_TP_PER_POINT: Final[int] = 10
ITEM_BOOST_TP_PER_POINT: Final[int] = 10

BOOST_MAX_AMOUNT: Final[int] = 100
TRAIN_MAX_AMOUNT: Final[int] = 10_000
ITEM_BOOST_MAX_AMOUNT: Final[int] = 1_000

BASE_BOOST_STATS: Final[Tuple[str, ...]] = ("Str", "Spd", "Int", "Luck", "Pot")
TRAIN_STATS: Final[Tuple[str, ...]] = ("Str", "Def", "Spd", "Int", "Luck")

# ============================================================================
# GUILDS
# ============================================================================

GUILD_BANK_CURRENCIES: Final[Tuple[str, ...]] = (
    "gold",
    "rubies",
    "soulShards",
    "focusedShards",
    "runes",
    "trainingPoints",
)
GUILD_DEPOSIT_CURRENCIES: Final[Tuple[str, ...]] = (
    "gold",
    "rubies",
    "soulShards",
    "focusedShards",
)

GUILD_NAME_MIN_LENGTH: Final[int] = 3
GUILD_NAME_MAX_LENGTH: Final[int] = 30
GUILD_MAX_LEVEL: Final[int] = 10
GUILD_BASE_CAPACITY: Final[int] = 2
GUILD_CAPACITY_PER_LEVEL: Final[int] = 3

# target level -> (minimum dungeon floor, bank gold cost)
GUILD_LEVEL_REQUIREMENTS: Final[Dict[int, Tuple[int, int]]] = {
    2: (1, 1_000_000_000),
    3: (5, 2_000_000_000),
    4: (10, 5_000_000_000),
    5: (15, 10_000_000_000),
    6: (20, 25_000_000_000),
    7: (30, 50_000_000_000),
    8: (40, 100_000_000_000),
    9: (50, 250_000_000_000),
    10: (75, 1_000_000_000_000),
}

# ============================================================================
# GUILD DUNGEON
# ============================================================================

DUNGEON_MAX_FLOOR: Final[int] = 100
DUNGEON_LEVELS_PER_FLOOR: Final[int] = 50
DEMON_LORD_FLOOR_THRESHOLD: Final[int] = 50
DUNGEON_STRENGTH_MULTIPLIER: Final[int] = 10
DEMON_LORD_STRENGTH_MULTIPLIER: Final[int] = 15
DUNGEON_REWARD_MULTIPLIER: Final[int] = 1
DEMON_LORD_REWARD_MULTIPLIER: Final[int] = 3
DUNGEON_BOSS_INTERVAL: Final[int] = 10
DUNGEON_IMMUNITY_START_FLOOR: Final[int] = 5
DUNGEON_MAX_IMMUNITIES: Final[int] = 6
DUNGEON_ELEMENT_BONUS: Final[float] = 1.25
DUNGEON_POWER_GATE: Final[float] = 0.4
DUNGEON_NPC_ROLL_FACTOR: Final[float] = 0.8

# ============================================================================
# GUILD BATTLES
# ============================================================================

GUILD_BATTLE_MAX_FIGHTERS: Final[int] = 5
GUILD_BATTLE_STATUSES: Final[Tuple[str, ...]] = (
    "pending",
    "in_progress",
    "completed",
    "declined",
)

# ============================================================================
# AUCTIONS
# ============================================================================

AUCTION_DURATION_HOURS: Final[int] = 8
AUCTION_SWEEP_INTERVAL_SECONDS: Final[int] = 60
AUCTION_STATUSES: Final[Tuple[str, ...]] = ("queued", "active", "completed")

# ============================================================================
# LEADERBOARDS
# ============================================================================

LEADERBOARD_TYPES: Final[Tuple[str, ...]] = (
    "wins",
    "losses",
    "npc_progress",
    "rank",
    "guild_dungeon",
    "guild_wins",
)
LEADERBOARD_DEFAULT_LIMIT: Final[int] = 50
LEADERBOARD_CACHE_HOURS: Final[int] = 24
