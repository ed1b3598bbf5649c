# src/ebsdmap/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from ebsdmap.loaders import HDF5_SUFFIXES, TextFormatConfig, load_point_store
from ebsdmap.reader import EBSDReader
from ebsdmap.weights import KERNELS, WeightMapConfig

LOG = logging.getLogger("ebsdmap.cli")


# --------------------------- small helpers ---------------------------


def _init_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s | %(name)s: %(message)s",
        force=True,
    )


def _load_reader(ns: argparse.Namespace) -> EBSDReader:
    """
    Load the --ebsd file into a reader. Format follows --format, else the suffix.
    """
    path = Path(ns.ebsd)
    if not path.exists():
        raise FileNotFoundError(
            f"EBSD file not found: {path}. Please check the file path and ensure the file exists."
        )

    fmt = ns.format
    if fmt is None:
        fmt = "dream3d" if path.suffix.lower() in HDF5_SUFFIXES else "text"

    kwargs: Dict[str, object] = {}
    if fmt == "dream3d":
        mapping = {
            key: val
            for key, val in (
                ("feature_id", ns.h5_feature_dset),
                ("phase", ns.h5_phase_dset),
                ("euler", ns.h5_euler_dset),
            )
            if val
        }
        kwargs["mapping"] = mapping or None
        kwargs["angles_in_radians"] = not ns.degrees
    else:
        kwargs["cfg"] = TextFormatConfig(angles_in_radians=not ns.degrees)

    try:
        store = load_point_store(path, fmt=fmt, **kwargs)
    except KeyError as e:
        dataset_name = str(e).strip("'\"")
        raise RuntimeError(
            f"Missing dataset '{dataset_name}' in HDF5 file '{path}'. "
            f"If your dataset has a different name, use the --h5-*-dset options to specify it. "
            f"Use 'h5dump -n {path}' to inspect the HDF5 structure."
        ) from e
    except (OSError, ValueError) as e:
        raise RuntimeError(f"Failed to load EBSD file '{path}': {e}") from e
    return EBSDReader(store)


def _read_nodes(path: Path) -> Dict[int, np.ndarray]:
    """
    Read a whitespace-separated node file: `id x y z` per line, '#' comments allowed.
    """
    df = pd.read_csv(path, sep=r"\s+", comment="#", header=None, engine="python")
    if df.shape[1] < 2:
        raise ValueError(f"{path}: node file needs an id column and at least one coordinate.")
    try:
        ids = df.iloc[:, 0].astype(int).to_numpy()
        coords = df.iloc[:, 1:4].to_numpy(dtype=float)
    except ValueError as e:
        raise RuntimeError(f"Failed to read node file '{path}': {e}") from e
    return {int(i): c for i, c in zip(ids, coords)}


# --------------------------- commands ---------------------------


def summary_command(ns: argparse.Namespace) -> int:
    _init_logging(ns.verbose)
    reader = _load_reader(ns)
    df = reader.table.phase_frame() if ns.phases else reader.table.to_frame()
    if ns.out is not None:
        Path(ns.out).parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(ns.out, index=False)
        LOG.info("[done] %s summary → %s (rows=%d)", "phase" if ns.phases else "grain", ns.out, len(df))
    else:
        print(df.to_string(index=False))
    return 0


def weights_command(ns: argparse.Namespace) -> int:
    _init_logging(ns.verbose)
    reader = _load_reader(ns)
    nodes = _read_nodes(Path(ns.nodes))
    cfg = WeightMapConfig(radius=ns.radius, kernel=ns.kernel)
    maps = reader.build_weight_maps(nodes, cfg)

    source = maps.phase if ns.phases else maps.grain
    if ns.phases:
        columns = [f"phase{p}" for p in range(reader.get_phase_num())]
    else:
        columns = [f"grain{f}" for f in reader.table.identity.feature_ids]
    ids = list(source.keys())
    values = np.vstack([source[i] for i in ids]) if ids else np.zeros((0, len(columns)))
    df = pd.DataFrame(values, columns=columns)
    df.insert(0, "node", np.asarray(ids, dtype=np.int64))

    Path(ns.out).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(ns.out, index=False)
    LOG.info("[done] weights for %d/%d nodes → %s", len(ids), len(nodes), ns.out)
    return 0


def doctor_command(ns: argparse.Namespace) -> int:
    """Validate an EBSD file and report grid, grain and phase counts."""
    _init_logging(ns.verbose)

    issues = []
    info = []
    try:
        reader = _load_reader(ns)
    except (FileNotFoundError, RuntimeError) as e:
        issues.append(f"✗ {e}")
        reader = None
    except Exception as e:
        issues.append(f"✗ Error loading {ns.ebsd}: {e}")
        reader = None

    if reader is not None:
        g = reader.geometry
        info.append(f"✓ Loaded {ns.ebsd}")
        info.append(f"  Grid: {g.nx} x {g.ny} x {g.nz} ({g.dim}-D), spacing={g.spacing}")
        info.append(f"  Bounding box: {tuple(g.bottom_left)} → {tuple(g.top_right)}")
        info.append(f"  Grains: {reader.get_grain_num()}, phases: {reader.get_phase_num()}")
        for p in range(reader.get_phase_num()):
            info.append(f"    phase {p}: {reader.get_grain_num(p)} grains")

    print("ebsdmap doctor - input validation\n" + "=" * 60)
    for msg in info:
        print(f"  {msg}")
    if issues:
        print("\n[ISSUES]")
        for msg in issues:
            print(f"  {msg}")
        print("\n" + "=" * 60)
        print("✗ Validation failed.")
        return 1
    print("\n" + "=" * 60)
    print("✓ All checks passed!")
    return 0


# --------------------------- CLI wiring ---------------------------


def _add_input_args(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("Input")
    g.add_argument("--ebsd", type=Path, required=True, help="EBSD text file or Dream3D HDF5 file")
    g.add_argument(
        "--format",
        choices=["text", "dream3d"],
        default=None,
        help="Input format (default: from file suffix; .dream3d/.h5/.hdf5 → dream3d)",
    )
    g.add_argument(
        "--degrees",
        action="store_true",
        help="Euler angles in the file are already in degrees (default: radians)",
    )
    g.add_argument("--h5-feature-dset", type=str, default=None, help="Feature-ID dataset (default: FeatureIds)")
    g.add_argument("--h5-phase-dset", type=str, default=None, help="Phase dataset (default: Phases)")
    g.add_argument("--h5-euler-dset", type=str, default=None, help="Euler dataset (default: EulerAngles)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ebsdmap",
        description="ebsdmap: grain/phase indexing and node weight maps for gridded EBSD data.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True, help="Available commands")

    s = sub.add_parser("summary", help="Print or write per-grain (or per-phase) averages")
    _add_input_args(s)
    s.add_argument("--out", type=Path, default=None, help="Write CSV instead of printing")
    s.add_argument("--phases", action="store_true", help="Summarise per phase instead of per grain")

    w = sub.add_parser("weights", help="Compute node → grain weight maps")
    _add_input_args(w)
    w.add_argument("--nodes", type=Path, required=True, help="Node file: 'id x y z' per line")
    w.add_argument(
        "--radius",
        type=float,
        default=None,
        help="Neighbourhood radius (default: containing cell only)",
    )
    w.add_argument(
        "--kernel",
        choices=sorted(KERNELS),
        default="uniform",
        help="Distance weighting inside the radius (default: uniform)",
    )
    w.add_argument("--phases", action="store_true", help="Write the phase weight map instead")
    w.add_argument("--out", type=Path, required=True, help="Output CSV")

    d = sub.add_parser("doctor", help="Validate an EBSD file")
    _add_input_args(d)

    return p


def main(argv: Optional[Iterable[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    ns = parser.parse_args(argv)

    if ns.command == "summary":
        return summary_command(ns)
    elif ns.command == "weights":
        return weights_command(ns)
    elif ns.command == "doctor":
        return doctor_command(ns)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
