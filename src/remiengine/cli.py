import argparse
import sys

from .config import ProtocolRequest, load_request, parse_asa, parse_sex
from .exceptions import ConfigurationError, RemiEngineError, ValidationError
from .ke0 import constant_ke0
from .logger import get_logger, setup_logging
from .protocol import generate_protocol
from .types import PatientCovariates, ProtocolResult

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remiengine",
        description="Remimazolam bolus + continuous infusion protocol planner")
    parser.add_argument("--config", type=str, help="Path to a YAML protocol request")
    parser.add_argument("--patient-id", type=str, default="anonymous")
    parser.add_argument("--age", type=float, default=54.0, help="Years")
    parser.add_argument("--weight", type=float, default=67.3, help="kg")
    parser.add_argument("--height", type=float, default=170.0, help="cm")
    parser.add_argument("--sex", type=str, default="male", help="male | female")
    parser.add_argument("--asa", type=str, default="low", help="low (ASA I-II) | high (ASA III-IV)")
    parser.add_argument("--bolus", type=float, default=7.0, help="Bolus dose in mg")
    parser.add_argument("--target-ce", type=float, default=1.0, help="Target Ce in ug/mL")
    parser.add_argument("--target-reach-time", type=float, help="Minutes (default 20)")
    parser.add_argument("--upper-threshold-ratio", type=float, help="Default 1.2")
    parser.add_argument("--reduction-factor", type=float, help="Default 0.70")
    parser.add_argument("--ke0", type=float, default=None, help="Fixed ke0 in 1/min (default 0.12)")
    parser.add_argument("--no-comparison", action="store_true", help="Skip the bolus-dose comparison")
    parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--log-file", type=str, default=None)
    return parser


def request_from_args(args: argparse.Namespace) -> ProtocolRequest:
    if args.config:
        request = load_request(args.config)
    else:
        request = ProtocolRequest(
            patient=PatientCovariates(
                patient_id=args.patient_id, age=args.age, weight=args.weight, height=args.height,
                sex=parse_sex(args.sex), asa=parse_asa(args.asa)),
            bolus_dose=args.bolus,
            target_ce=args.target_ce,
        )
    overrides = dict(request.overrides)
    for key in ("target_reach_time", "upper_threshold_ratio", "reduction_factor"):
        value = getattr(args, key)
        if value is not None:
            overrides[key] = value
    return ProtocolRequest(
        patient=request.patient,
        bolus_dose=request.bolus_dose,
        target_ce=request.target_ce,
        overrides=overrides,
        ke0=args.ke0 if args.ke0 is not None else request.ke0,
        log_level=args.log_level or request.log_level,
    )


def format_report(result: ProtocolResult) -> str:
    pk = result.pk_params
    m = result.metrics
    lines = [
        f"Patient {result.patient.patient_id}: {result.patient.age:g} y, {result.patient.weight:g} kg, "
        f"BMI {result.patient.bmi:.1f}",
        f"PK: V1={pk.v1:.3f} V2={pk.v2:.3f} V3={pk.v3:.3f} L, CL={pk.cl:.4f} L/min, ke0={pk.ke0:.4f}/min",
        f"Optimal continuous rate: {result.optimal_rate:.2f} mg/kg/h "
        f"(Ce at {result.params.target_reach_time:g} min = {result.optimization.predicted_ce:.3f} ug/mL, "
        f"error {result.optimization.relative_error:.1f}%)",
        "",
        "Step | Method                    | Dose            | Total       | Timing                     | Notes",
    ]
    for s in result.clinical_protocol:
        lines.append(f"{s.step:>4} | {s.method:<25} | {s.dose:<15} | {s.total_dose:<11} | {s.timing:<26} | {s.notes}")
    lines += [
        "",
        f"Final Ce {m.final_ce:.3f} | Max Ce {m.max_ce:.3f} | Avg deviation {m.avg_deviation:.3f} | "
        f"Accuracy {m.target_accuracy:.1f}% | Stability {m.stability_index:.1f} | "
        f"Convergence {m.convergence_time:g} min | Adjustments {len(result.adjustments)}",
    ]
    if result.comparison:
        lines += ["", "Bolus (mg) | Rate (mg/kg/h) | Final Ce | Accuracy (%) | Adjustments | Recommendation"]
        for c in result.comparison:
            lines.append(f"{c.bolus_dose:>10g} | {c.optimal_rate:>14.2f} | {c.final_ce:>8.3f} | "
                         f"{c.target_accuracy:>12.1f} | {c.adjustment_count:>11} | {c.recommendation.value}")
        best = result.recommended_comparison
        lines.append(f"Recommended bolus: {best.bolus_dose:g} mg at {best.optimal_rate:.2f} mg/kg/h "
                     f"(expected final Ce {best.final_ce:.3f} ug/mL)")
    lines.append(f"\nCalculated in {result.calculation_time_ms:.0f} ms")
    return "\n".join(lines)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        request = request_from_args(args)
    except ConfigurationError as e:
        print(f"Error loading request: {e}", file=sys.stderr)
        return 2

    try:
        setup_logging(request.log_level, args.log_file)
    except ValueError as e:
        print(f"Error configuring logging: {e}", file=sys.stderr)
        return 2

    try:
        result = generate_protocol(
            request.patient, request.bolus_dose, request.target_ce, constant_ke0(request.ke0),
            target_reach_time=request.overrides.get("target_reach_time"),
            upper_threshold_ratio=request.overrides.get("upper_threshold_ratio"),
            reduction_factor=request.overrides.get("reduction_factor"),
            include_comparison=not args.no_comparison,
        )
    except ValidationError as e:
        print("Request rejected:", file=sys.stderr)
        for reason in e.errors:
            print(f"  - {reason}", file=sys.stderr)
        return 1
    except (RemiEngineError, ValueError) as e:
        logger.error("Protocol generation failed: %s", e)
        return 1

    print(format_report(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
