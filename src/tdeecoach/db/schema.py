"""SQLite database schema definitions."""

SCHEMA_SQL = """
-- User profile and goals (one row per user)
CREATE TABLE IF NOT EXISTS user_goals (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    calorie_goal REAL NOT NULL DEFAULT 2000,
    protein_goal REAL NOT NULL DEFAULT 150,
    carbs_goal REAL NOT NULL DEFAULT 200,
    fat_goal REAL NOT NULL DEFAULT 65,
    height_cm REAL,
    birth_date DATE,
    sex TEXT CHECK(sex IN ('male', 'female') OR sex IS NULL),
    athlete_status BOOLEAN NOT NULL DEFAULT FALSE,
    goal_type TEXT NOT NULL DEFAULT 'maintain' CHECK(goal_type IN ('lose', 'gain', 'maintain')),
    goal_rate REAL NOT NULL DEFAULT 0.5 CHECK(goal_rate >= 0),
    target_weight_kg REAL,
    start_weight_kg REAL,
    start_date DATE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Raw daily inputs; NULL nutrition = untracked, 0 = deliberate fast
CREATE TABLE IF NOT EXISTS daily_logs (
    user_id INTEGER NOT NULL,
    date DATE NOT NULL,
    scale_weight_kg REAL,
    nutrition_calories REAL CHECK(nutrition_calories >= 0 OR nutrition_calories IS NULL),
    nutrition_protein_g REAL,
    nutrition_carbs_g REAL,
    nutrition_fat_g REAL,
    step_count INTEGER,
    log_status TEXT NOT NULL DEFAULT 'skipped' CHECK(log_status IN ('complete', 'partial', 'skipped')),
    status_override BOOLEAN NOT NULL DEFAULT FALSE,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, date),
    FOREIGN KEY (user_id) REFERENCES user_goals(user_id)
);

-- Derived daily TDEE chain, written only by the recompute orchestrator
CREATE TABLE IF NOT EXISTS computed_states (
    user_id INTEGER NOT NULL,
    date DATE NOT NULL,
    trend_weight_kg REAL NOT NULL,
    raw_tdee_kcal REAL NOT NULL,
    estimated_tdee_kcal REAL NOT NULL,
    flux_confidence_range REAL NOT NULL,
    energy_density_used REAL NOT NULL,
    weight_delta_kg REAL NOT NULL,
    days_tracked INTEGER NOT NULL DEFAULT 0,
    tdee_variance REAL NOT NULL DEFAULT 0,
    step_baseline REAL,
    PRIMARY KEY (user_id, date),
    FOREIGN KEY (user_id) REFERENCES user_goals(user_id)
);

-- Weekly coaching snapshots keyed by Monday
CREATE TABLE IF NOT EXISTS weekly_check_ins (
    user_id INTEGER NOT NULL,
    week_start_date DATE NOT NULL,
    week_end_date DATE NOT NULL,
    average_tdee REAL NOT NULL,
    suggested_calories REAL NOT NULL,
    adherence_score REAL NOT NULL,
    confidence_level TEXT NOT NULL CHECK(confidence_level IN ('learning', 'low', 'medium', 'high')),
    trend_weight_start REAL NOT NULL,
    trend_weight_end REAL NOT NULL,
    weekly_weight_change REAL NOT NULL,
    notes TEXT,
    PRIMARY KEY (user_id, week_start_date),
    FOREIGN KEY (user_id) REFERENCES user_goals(user_id)
);

-- Pending-recompute watermark: every date >= pending_from needs recompute
CREATE TABLE IF NOT EXISTS recompute_queue (
    user_id INTEGER PRIMARY KEY,
    pending_from DATE NOT NULL,
    FOREIGN KEY (user_id) REFERENCES user_goals(user_id)
);
"""


def get_schema_sql() -> str:
    """Return the complete schema SQL."""
    return SCHEMA_SQL
