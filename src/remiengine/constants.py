# src/remiengine/constants.py
# Masui 2022 remimazolam population model and protocol settings.
# Time in minutes, volumes in L, clearances in L/min, rates in mg/kg/h.

# --------------------------
# Covariate model
# --------------------------
THETA_1 = 3.57     # V1 (L)
THETA_2 = 11.3     # V2 (L)
THETA_3 = 27.2     # V3 (L)
THETA_4 = 1.03     # V2 weight exponent
THETA_5 = 1.10     # V3 weight exponent
THETA_6 = 0.401    # CL (L/min)
THETA_8 = 0.308    # V1 female effect
THETA_9 = 0.146    # V2 age effect
THETA_10 = -0.184  # CL ASA III-IV effect

ALLOMETRIC_EXPONENT = 0.75
Q2_CL_RATIO = 0.8
Q3_CL_RATIO = 0.3

STANDARD_WEIGHT = 67.3  # kg
STANDARD_AGE = 54.0     # years

# --------------------------
# Integration
# --------------------------
TIME_STEP = 0.1               # min
SIMULATION_DURATION = 180.0   # min
MAINTENANCE_START = 60.0      # min, start of the steady-state evaluation window

# --------------------------
# Controller
# --------------------------
DEFAULT_TARGET_REACH_TIME = 20.0
DEFAULT_UPPER_THRESHOLD_RATIO = 1.2
OPTIMIZED_REDUCTION_FACTOR = 0.70
MINIMUM_ADJUSTMENT_INTERVAL = 5.0  # min

MIN_INFUSION_RATE = 0.1
MAX_INFUSION_RATE = 6.0

# --------------------------
# Rate optimizer grid (inclusive)
# --------------------------
OPTIMIZATION_MIN_RATE = 0.3
OPTIMIZATION_MAX_RATE = 4.0
OPTIMIZATION_STEP = 0.1

# --------------------------
# Input ranges
# --------------------------
MIN_AGE, MAX_AGE = 18.0, 80.0
MIN_WEIGHT, MAX_WEIGHT = 40.0, 120.0
MIN_BMI, MAX_BMI = 16.0, 40.0
MIN_BOLUS_DOSE, MAX_BOLUS_DOSE = 1.0, 15.0
MIN_TARGET_CE, MAX_TARGET_CE = 0.5, 3.0

# --------------------------
# Performance evaluation & dose comparison
# --------------------------
ACCURACY_TOLERANCE = 0.10      # +/- fraction of target
CONVERGENCE_TOLERANCE = 0.05   # +/- fraction of target
STABILITY_SCALE = 1000.0

COMPARISON_BOLUS_DOSES = (3.0, 5.0, 7.0, 10.0)  # mg
REFERENCE_FINAL_CE = 1.0    # ug/mL, the scoring heuristic is anchored here
SINGLE_ADJUSTMENT_BONUS = 10.0
FINAL_CE_BONUS = 15.0
FINAL_CE_BONUS_TOLERANCE = 0.1
ADJUSTMENT_PENALTY = 0.1   # ug/mL-equivalent charged per reduction when picking a bolus
TIER_TOP_SCORE = 90.0
TIER_GOOD_SCORE = 75.0
TIER_ACCEPTABLE_SCORE = 60.0

# Fixed ke0 used by the non-individualized reference calculation
REFERENCE_KE0 = 0.12
