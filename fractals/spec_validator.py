from __future__ import annotations
from typing import List, Optional

from fractals.base import ProgramSpec, KernelStep

_ROLES = {"scalar", "surface_in", "surface_out", "buffer_out"}
_OUTPUT_ROLES = {"surface_out", "buffer_out"}


class SpecError(Exception):
    """Aggregated ProgramSpec validation error(s)."""


def validate_program_spec(spec: ProgramSpec, *, backend_hint: Optional[str] = None) -> None:
    """
    Validates structural correctness of a ProgramSpec. Raises SpecError on failure.
    """
    errors: List[str] = []
    args = spec.args or {}
    steps = spec.steps or []

    # --- output_arg ---
    if not spec.output_arg or spec.output_arg not in args:
        errors.append(f"output_arg '{spec.output_arg}' is not present in spec.args.")
    elif args[spec.output_arg].role not in _OUTPUT_ROLES:
        errors.append(f"output_arg '{spec.output_arg}' must be a surface_out or buffer_out.")

    # --- arg sanity ---
    for name, a in args.items():
        if a.role not in _ROLES:
            errors.append(f"Arg '{name}': invalid role='{a.role}'.")
        if a.dtype is None:
            errors.append(f"Arg '{name}': dtype is None.")
        if a.role in _OUTPUT_ROLES and not a.shape_expr:
            errors.append(f"Arg '{name}': output role but no shape_expr provided.")

    if not steps:
        errors.append("ProgramSpec has no steps.")

    # --- steps sanity ---
    target_backend = (backend_hint or spec.backend or "").upper()
    for idx, step in enumerate(steps):
        if not isinstance(step, KernelStep):
            errors.append(f"Step[{idx}] is not a KernelStep.")
            continue

        if not step.args or not isinstance(step.args, (list, tuple)):
            errors.append(f"Step[{idx}] '{step.name}': args must be a non-empty list.")
            continue

        for a in step.args:
            if a not in args:
                errors.append(f"Step[{idx}] '{step.name}': arg '{a}' not found in spec.args.")

        if len(set(step.args)) != len(step.args):
            errors.append(f"Step[{idx}] '{step.name}': args contain duplicates.")

        fn = step.func
        if target_backend == "CUDA":
            # CUDA kernels are launched as func[grid, block, stream](...)
            if not hasattr(fn, "__getitem__"):
                errors.append(f"Step[{idx}] '{step.name}': expected a CUDA kernel; got {type(fn).__name__}.")
            meta = step.meta or {}
            if not meta.get("block"):
                errors.append(f"Step[{idx}] '{step.name}': CUDA step needs a 'block' shape.")
        elif not callable(fn):
            errors.append(f"Step[{idx}] '{step.name}': 'func' must be callable.")

    if errors:
        raise SpecError("ProgramSpec validation failed:\n- " + "\n- ".join(errors))
