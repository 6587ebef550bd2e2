"""End-to-end reconstruction runs over stored image features."""

from __future__ import annotations

import argparse
import itertools
import logging
import sys
from pathlib import Path
from typing import Sequence

import numpy as np

from .dirlist import Directory
from .matching import Features, get_matched_points, knn_match, match_sequence
from .pointcloud import numbered_filename, two_view_cloud, write_pcd_ascii, write_point_list
from .structure import Reconstruction, init_structure, save_structure

log = logging.getLogger(__name__)

INCREMENTAL_K = np.array([[2759.48, 0.0, 1520.69], [0.0, 2764.16, 1006.81], [0.0, 0.0, 1.0]])
PAIRS_K = np.array(
    [[1262.958489659621, 0.0, 562.3792964280647], [0.0, 1266.222824039161, 727.8125879762329], [0.0, 0.0, 1.0]]
)
_MIN_KEY_POINTS = 10


def get_file_names(dir_name) -> list[str]:
    """Paths of the entries in ``dir_name`` that are not directories."""
    with Directory(str(dir_name)) as directory:
        return [info.path for info in directory if not info.is_dir]


def load_features(path) -> Features:
    """Load key points, descriptors and colours from an ``.npz`` file."""
    with np.load(path) as data:
        return Features(data["key_points"], data["descriptors"], data["colors"])


def run_incremental(k, features: Sequence[Features]) -> Reconstruction:
    """Match consecutive images and grow a reconstruction view by view."""
    matches = match_sequence([f.descriptors for f in features])
    rec = init_structure(k, features, matches)
    for i in range(1, len(matches)):
        rec.add_view(i, k, features, matches)
    return rec


def _list_names(list_file) -> list[str]:
    names = []
    with open(list_file, encoding="utf-8") as handle:
        for line in handle:
            name = line.rstrip("\r\n")
            if not name:
                break
            names.append(name)
    return names


def run_pairs(k, list_file, features_dir, out_dir) -> list[Path]:
    """Build a cloud for every pair of listed feature files; return the PCD paths."""
    names = _list_names(list_file)
    features_dir = Path(features_dir)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    counter = itertools.count(1)
    written = []
    for i, first_name in enumerate(names):
        for second_name in names[i + 1:]:
            first = load_features(features_dir / first_name)
            second = load_features(features_dir / second_name)
            matches = [row[0] for row in knn_match(first.descriptors, second.descriptors, 1) if row]
            n = next(counter)
            log.info("match %d: %d points", n, len(matches))
            p1, p2 = get_matched_points(first.key_points, second.key_points, matches)
            cloud, _ = two_view_cloud(k, p1, p2, seed=0)
            write_point_list(out_dir / numbered_filename("pointcloud", n, ".txt"), cloud)
            pcd = out_dir / numbered_filename("pointcloud", n, ".pdb")
            write_pcd_ascii(pcd, cloud)
            written.append(pcd)
    return written


def _load_directory(dir_name) -> list[Features]:
    result = []
    for path in get_file_names(dir_name):
        try:
            feats = load_features(path)
        except (OSError, ValueError, KeyError):
            continue
        log.info("Extracting features: %s", path)
        if len(feats) <= _MIN_KEY_POINTS:
            continue
        result.append(feats)
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="sfmrecon")
    commands = parser.add_subparsers(dest="command", required=True)
    inc = commands.add_parser("incremental", help="reconstruct a sequence of images")
    inc.add_argument("directory", nargs="?", default="images")
    inc.add_argument("--output", default="Viewer/structure.yml")
    pairs = commands.add_parser("pairs", help="two-view clouds for every listed pair")
    pairs.add_argument("list_file", nargs="?", default="sift.txt")
    pairs.add_argument("features_dir", nargs="?", default=".")
    pairs.add_argument("out_dir", nargs="?", default=".")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        if args.command == "incremental":
            features = _load_directory(args.directory)
            if len(features) < 2:
                raise ValueError("at least two usable images are needed")
            rec = run_incremental(INCREMENTAL_K, features)
            out = Path(args.output)
            out.parent.mkdir(parents=True, exist_ok=True)
            save_structure(out, rec.rotations, rec.motions, rec.structure, rec.colors)
        else:
            run_pairs(PAIRS_K, args.list_file, args.features_dir, args.out_dir)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0