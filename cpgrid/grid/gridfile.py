"""
ASCII grid file reader and writer.

File layout (whitespace separated tokens, one section per keyword):

    CPGRID 1
    DIMENSIONS d
    CARTDIMS nx ny nz
    NODES nn            followed by nn*d coordinates
    FACES nf            followed by, per face: n_nodes node... cell0 cell1
    CELLS nc            followed by, per cell: n_faces face...
    GLOBALCELL flag     followed by nc indices when flag is 1
    CELLNODES nc m      followed by nc*m lattice corner nodes (optional section)
    ZCORN n             followed by n depths (optional section)
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np
from loguru import logger

from ..constants import NO_CELL
from .topology import UnstructuredGrid

MAGIC = "CPGRID"
VERSION = 1


def write_grid(grid: UnstructuredGrid, filename: Union[str, Path]) -> Path:
    """
    Write an UnstructuredGrid to an ASCII grid file.

    Parameters
    ----------
    grid : UnstructuredGrid
        Grid to save.
    filename : str or Path
        Output path.

    Returns
    -------
    Path
        Path to the written file.
    """
    grid.check_live()
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    d = grid.dimensions

    with open(path, 'w') as f:
        f.write(f"{MAGIC} {VERSION}\n")
        f.write(f"DIMENSIONS {d}\n")
        f.write("CARTDIMS {} {} {}\n".format(*grid.cartdims))

        f.write(f"NODES {grid.number_of_nodes}\n")
        for p in grid.node_coordinates:
            f.write(" ".join(f"{v:.16e}" for v in p) + "\n")

        f.write(f"FACES {grid.number_of_faces}\n")
        for face in range(grid.number_of_faces):
            nodes = grid.face_nodes[grid.face_nodepos[face]:grid.face_nodepos[face + 1]]
            c0, c1 = grid.face_cells[face]
            f.write(f"{nodes.size} " + " ".join(str(n) for n in nodes) + f" {c0} {c1}\n")

        f.write(f"CELLS {grid.number_of_cells}\n")
        for cell in range(grid.number_of_cells):
            faces = grid.cell_faces[grid.cell_facepos[cell]:grid.cell_facepos[cell + 1]]
            f.write(f"{faces.size} " + " ".join(str(x) for x in faces) + "\n")

        if grid.global_cell is None:
            f.write("GLOBALCELL 0\n")
        else:
            f.write("GLOBALCELL 1\n")
            f.write(" ".join(str(g) for g in grid.global_cell) + "\n")

        if grid.cell_nodes is not None:
            f.write("CELLNODES {} {}\n".format(*grid.cell_nodes.shape))
            for row in grid.cell_nodes:
                f.write(" ".join(str(n) for n in row) + "\n")

        if grid.zcorn is not None:
            f.write(f"ZCORN {grid.zcorn.size}\n")
            f.write(" ".join(f"{v:.16e}" for v in grid.zcorn) + "\n")

    logger.debug(f"Saved grid file to: {path}")
    return path


def _expect(tokens, ptr: int, keyword: str) -> int:
    if tokens[ptr] != keyword:
        raise ValueError(f"expected {keyword}, found {tokens[ptr]!r}")
    return ptr + 1


def read_grid(filename: Union[str, Path]) -> Optional[UnstructuredGrid]:
    """
    Read a grid written by :func:`write_grid`.

    Returns
    -------
    UnstructuredGrid or None
        None if the file is missing or malformed.
    """
    path = Path(filename)
    try:
        with open(path, 'r') as f:
            tokens = f.read().split()
    except OSError as e:
        logger.debug(f"Cannot open grid file {path}: {e}")
        return None

    try:
        ptr = _expect(tokens, 0, MAGIC)
        version = int(tokens[ptr]); ptr += 1
        if version != VERSION:
            raise ValueError(f"unsupported version {version}")

        ptr = _expect(tokens, ptr, "DIMENSIONS")
        d = int(tokens[ptr]); ptr += 1
        if d not in (2, 3):
            raise ValueError(f"dimensions must be 2 or 3, got {d}")

        ptr = _expect(tokens, ptr, "CARTDIMS")
        cartdims = tuple(int(t) for t in tokens[ptr:ptr + 3]); ptr += 3

        ptr = _expect(tokens, ptr, "NODES")
        nn = int(tokens[ptr]); ptr += 1
        nodes = np.array([float(t) for t in tokens[ptr:ptr + nn * d]]).reshape((nn, d))
        ptr += nn * d

        ptr = _expect(tokens, ptr, "FACES")
        nf = int(tokens[ptr]); ptr += 1
        face_nodepos = [0]
        face_nodes = []
        face_cells = np.empty((nf, 2), dtype=np.int64)
        for face in range(nf):
            m = int(tokens[ptr]); ptr += 1
            face_nodes.extend(int(t) for t in tokens[ptr:ptr + m]); ptr += m
            face_nodepos.append(face_nodepos[-1] + m)
            face_cells[face, 0] = int(tokens[ptr])
            face_cells[face, 1] = int(tokens[ptr + 1])
            ptr += 2

        ptr = _expect(tokens, ptr, "CELLS")
        nc = int(tokens[ptr]); ptr += 1
        cell_facepos = [0]
        cell_faces = []
        for cell in range(nc):
            m = int(tokens[ptr]); ptr += 1
            cell_faces.extend(int(t) for t in tokens[ptr:ptr + m]); ptr += m
            cell_facepos.append(cell_facepos[-1] + m)

        ptr = _expect(tokens, ptr, "GLOBALCELL")
        global_cell = None
        if int(tokens[ptr]):
            global_cell = np.array([int(t) for t in tokens[ptr + 1:ptr + 1 + nc]], dtype=np.int64)
            if global_cell.size != nc:
                raise ValueError("truncated GLOBALCELL section")
            ptr += nc
        ptr += 1

        cell_nodes = None
        if ptr < len(tokens) and tokens[ptr] == "CELLNODES":
            nrows, ncols = int(tokens[ptr + 1]), int(tokens[ptr + 2]); ptr += 3
            if nrows != nc or ncols != 2 ** d:
                raise ValueError(f"CELLNODES shape ({nrows}, {ncols}) does not match grid")
            cell_nodes = np.array([int(t) for t in tokens[ptr:ptr + nrows * ncols]], dtype=np.int64)
            cell_nodes = cell_nodes.reshape((nrows, ncols))
            ptr += nrows * ncols

        zcorn = None
        if ptr < len(tokens):
            ptr = _expect(tokens, ptr, "ZCORN")
            nz = int(tokens[ptr]); ptr += 1
            zcorn = np.array([float(t) for t in tokens[ptr:ptr + nz]])
            if zcorn.size != nz:
                raise ValueError("truncated ZCORN section")
            ptr += nz
        if ptr < len(tokens):
            raise ValueError(f"unexpected token {tokens[ptr]!r}")

        face_nodes = np.array(face_nodes, dtype=np.int64)
        cell_faces = np.array(cell_faces, dtype=np.int64)
        if (face_nodes.size and (face_nodes.min() < 0 or face_nodes.max() >= nn)) or \
                (cell_faces.size and (cell_faces.min() < 0 or cell_faces.max() >= nf)) or \
                (face_cells.size and (face_cells.min() < NO_CELL or face_cells.max() >= nc)) or \
                (cell_nodes is not None and cell_nodes.size and
                 (cell_nodes.min() < 0 or cell_nodes.max() >= nn)):
            raise ValueError("connectivity index out of range")
    except (IndexError, ValueError) as e:
        logger.debug(f"Malformed grid file {path}: {e}")
        return None

    return UnstructuredGrid(
        dimensions=d,
        cartdims=cartdims,
        node_coordinates=nodes,
        face_nodepos=np.array(face_nodepos, dtype=np.int64),
        face_nodes=face_nodes,
        face_cells=face_cells,
        cell_facepos=np.array(cell_facepos, dtype=np.int64),
        cell_faces=cell_faces,
        cell_nodes=cell_nodes,
        global_cell=global_cell,
        zcorn=zcorn,
    )
