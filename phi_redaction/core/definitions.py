# phi_redaction/core/definitions.py

"""Constants for PHI categories, labels, persistence keys and the feature catalog."""


class PHICategory:
    """Constants representing detectable PHI categories."""

    DATE = "date"
    PHONE = "phone"
    EMAIL = "email"
    SSN = "ssn"
    MRN = "mrn"
    ZIP_CODE = "zip_code"
    NAME = "name"
    ADDRESS = "address"
    UNKNOWN = "unknown"


class Label:
    """Training labels."""

    PHI = "phi"
    NOT_PHI = "not_phi"


class ExampleSource:
    """Source tags recorded on training examples."""

    FEEDBACK = "feedback"
    PRETRAIN_FETCHED = "pretrain_hf"
    PRETRAIN_SYNTHETIC = "pretrain_synthetic"


class StorageKey:
    """Keys used with the persistence collaborator."""

    MODEL = "phi_model"
    TRAINING_DB = "phi_training_db"
    STATS = "phi_stats"
    PRETRAINED = "phi_pretrained"


# Feature catalog, in scoring order
FEATURE_NAMES = (
    "has_title_before",
    "has_possessive",
    "near_patient_word",
    "near_geographic_word",
    "near_institution_word",
    "capitalized_sequence",
    "after_preposition",
    "has_suffix_indicator",
    "in_quotes",
    "near_relationship_word",
    "looks_like_date",
    "looks_like_phone",
    "looks_like_email",
    "looks_like_ssn",
    "looks_like_mrn",
    "looks_like_address",
    "looks_like_zip",
    "is_all_caps",
    "has_numbers",
    "length_over_10",
    "common_word",
)

# Scoring and update constants
PHI_THRESHOLD = 3.0
WEIGHT_BOUND = 10.0
CONTEXT_TOKENS = 10
CONTEXT_CHARS = 50

# Supervised retrain
RETRAIN_EPOCHS = 3
DEFAULT_LEARNING_RATE = 0.15

# Reward-shaped pretraining
PRETRAIN_EPOCHS = 10
PRETRAIN_INITIAL_RATE = 0.2
PRETRAIN_RATE_DECAY = 0.95
