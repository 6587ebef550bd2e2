# sfmrecon

Sparse 3D reconstruction (structure from motion) from image features that
have already been extracted, built on NumPy.

Each image is described by a `sfmrecon.matching.Features` object: an Nx2
array of key point positions, an NxD array of descriptors and an Nx3 array
of 8-bit key point colours, all of the same length.

## What it does

- `sfmrecon.matching` matches descriptors by brute-force Euclidean distance
  (`knn_match`). `match_features` keeps a match only if it passes a 0.6
  ratio test and is no more than five times the larger of the best passing
  distance and 10. `match_sequence` matches each image with the next one.
- `sfmrecon.geometry` holds the geometry: RANSAC estimation of the
  fundamental matrix (`find_fundamental_ransac`) and the essential matrix
  (`find_essential_ransac`), pose recovery by cheirality
  (`recover_pose`), DLT triangulation (`triangulate_points`,
  `linear_ls_triangulation`), axis-angle to rotation matrix (`rodrigues`)
  and pose from 3-D/2-D correspondences with RANSAC (`solve_pnp_ransac`).
  RANSAC functions take a `seed` for reproducible results.
- `sfmrecon.structure` builds a reconstruction incrementally.
  `find_transform` recovers the pose of the second camera and raises
  `TransformError` when 15 or fewer matches, or under 60 % of them, are
  RANSAC inliers, or when under 70 % of the inliers lie in front of both
  cameras. `init_structure` triangulates the first two images and returns a
  `Reconstruction`; `Reconstruction.add_view` poses the next image against
  the existing points and merges its new points (`fusion_structure`).
  `save_structure` writes camera counts, rotations, translations, points
  and colours to an OpenCV-style YAML file (`%YAML:1.0`).
- `sfmrecon.pointcloud` reconstructs one image pair on its own from the
  fundamental matrix (`two_view_cloud`), logging a warning when the
  recovered rotation is not coherent, and reads and writes point clouds as
  a bracketed text list (`write_point_list`) and as ASCII PCD v0.7
  (`write_pcd_ascii`, `read_pcd`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Feature files

The command line reads features from NumPy `.npz` files holding the arrays
`key_points`, `descriptors` and `colors`, loaded with
`sfmrecon.pipeline.load_features`.

## Command line

```
sfmrecon incremental [DIRECTORY] [--output PATH]
```

loads every feature file in `DIRECTORY` (default `images`), skipping
entries that cannot be loaded and images with 10 or fewer key points,
matches consecutive images, reconstructs them incrementally and saves the
result to `PATH` (default `Viewer/structure.yml`). At least two usable
images are needed.

```
sfmrecon pairs [LIST_FILE] [FEATURES_DIR] [OUT_DIR]
```

reads feature file names from `LIST_FILE` (default `sift.txt`), one per
line up to the first empty line, looked up in `FEATURES_DIR` (default
`.`). For every pair of listed files it matches each descriptor to its
nearest neighbour, builds a two-view cloud and writes
`pointcloud<N>.txt` and an ASCII PCD file `pointcloud<N>.pdb` into
`OUT_DIR` (default `.`), numbering pairs from 1.

Both commands print `error: ...` and exit with status 1 on failure.

```
sfmrecon-browse file PATH
sfmrecon-browse list [PATH]
sfmrecon-browse sorted [PATH]
sfmrecon-browse browse [PATH]
```

is a small directory browser (`sfmrecon.browse`): `file` prints the path,
name, extension and whether the entry is a directory or a regular file;
`list` prints entries in the order the system returns them; `sorted` puts
directories first and then orders by name; `browse` prints a numbered
sorted listing and enters the subdirectory whose number is typed, until
end of input. Directories are shown with a trailing `/`, and listings
include `.` and `..`.

## Library use

```python
import numpy as np
from sfmrecon.geometry import linear_ls_triangulation, rodrigues
from sfmrecon.pointcloud import write_pcd_ascii, read_pcd

# Triangulate one normalised correspondence from two cameras.
P = np.hstack([np.eye(3), np.zeros((3, 1))])
P1 = np.hstack([np.eye(3), np.array([[-1.0], [0.0], [0.0]])])
X = linear_ls_triangulation((0.1, 0.2, 1.0), P, (-0.4, 0.2, 1.0), P1)

# Rotation vector to rotation matrix.
R = rodrigues(np.array([0.0, 0.0, np.pi / 2]))

# Write and read back an ASCII PCD point cloud.
write_pcd_ascii("cloud1.pcd", [(0.0, 0.0, 1.0), (1.0, 2.0, 3.0)])
points = read_pcd("cloud1.pcd")
```

Directory listings are available through `sfmrecon.dirlist.Directory`,
which can be iterated, indexed when opened sorted, and used as a context
manager:

```python
from sfmrecon.dirlist import Directory

with Directory(".", sort=True) as listing:
    for entry in listing:
        print(entry.name + ("/" if entry.is_dir else ""))
```

## What it does not do

- It does not read images or detect key points and descriptors; features
  must be prepared beforehand and stored as `.npz` files.
- It does not display point clouds; results are written to YAML, text and
  PCD files for viewing with other tools.
- It does not calibrate cameras; the command line uses fixed intrinsic
  matrices (`INCREMENTAL_K` and `PAIRS_K` in `sfmrecon.pipeline`), and
  library functions take the intrinsic matrix as an argument.