"""Run-time info printing utilities."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Optional


def _fmt_float(x: Optional[float], fmt: str = "{:.3g}") -> str:
    if x is None:
        return "n/a"
    try:
        return fmt.format(float(x))
    except (TypeError, ValueError):
        return "n/a"


def print_run_header(tag: str) -> None:
    # Use a stable timezone so logs are comparable across machines.
    ts = datetime.now(ZoneInfo("Europe/Berlin")).strftime("%Y-%m-%d %H:%M:%S %Z")
    print(f"\n[run] {tag}  start={ts}")


def print_problem_summary(domain, globdat=None) -> None:
    """Mesh, boundary and material summary of a domain."""
    kinds = Counter(type(el).__name__ for el in domain.elements)
    kinds_s = "  ".join(f"{k}={v}" for k, v in sorted(kinds.items()))
    print(
        f"[mesh] nodes={domain.nnodes}  elements={len(domain.elements)} ({kinds_s})"
        f"  ndofs/node={domain.ndofs}"
    )
    print(
        f"[dofs] neqs={domain.neqs}  fixed={domain.ebc_static_dofs.size}"
        f"  prescribed(t)={domain.ebc_time_dofs.size}"
        f"  loads={domain.nbc_static_dofs.size}  loads(t)={domain.nbc_time_dofs.size}"
        f"  K={'sparse' if domain.sparse else 'dense'}"
    )

    seen = set()
    for el in domain.elements:
        prop = el.prop
        key = (prop.get("name"), prop.get("E"), prop.get("nu"), prop.get("sigmaY"), prop.get("K"), prop.get("rho"))
        if key in seen:
            continue
        seen.add(key)
        name = prop.get("name")
        if name in ("NeuralNetwork1D", "NeuralNetwork2D"):
            form = prop.get("tangent_form") or "finite-difference"
            print(f"[material] ({name}) external response  tangent={form}  rho={_fmt_float(prop.get('rho'))}")
            continue
        line = f"[material] ({name}) E={_fmt_float(prop.get('E'))}"
        if "nu" in prop:
            line += f"  nu={_fmt_float(prop.get('nu'))}"
        if "sigmaY" in prop:
            line += f"  sigmaY={_fmt_float(prop.get('sigmaY'))}  K={_fmt_float(prop.get('K', 0.0))}"
        line += f"  rho={_fmt_float(prop.get('rho'))}"
        print(line)

    req = any(getattr(el, "use_numba", False) for el in domain.elements)
    print(f"[numba] q4_kernels={'yes' if req else 'no'}")

    if globdat is not None:
        print(
            f"[state] t={globdat.time:.6g}  ||u||={float((globdat.state ** 2).sum()) ** 0.5:.3e}"
            f"  mass={'assembled' if globdat.M is not None else 'not assembled'}"
        )
