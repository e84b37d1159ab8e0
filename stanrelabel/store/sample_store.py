# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""In-memory table of named draw columns replicated per chain.

This module provides the :py:class:`SampleStore`, the data structure that every
stage of StanRelabel consumes and produces. A sample store pairs a single flat
name table with one two-dimensional draw array per chain, such that column ``i``
of every chain holds the draws of ``names[i]``. Sharing the name table between
chains guarantees that a column always refers to the same quantity in every
chain, no matter how columns are renamed or permuted.

Key Features:
    - Validation of the column/length invariants at construction
    - Variable bookkeeping (variable name and dimensions) derived from the names
    - Per-column metadata carried along with the columns
    - Loading from CmdStan output via cmdstanpy
    - Export to ArviZ InferenceData and NetCDF

Stores are treated as immutable values: the processing stages return new stores
rather than mutating their input.
"""

from __future__ import annotations

import itertools
import os
import re

from typing import Any, Optional, Sequence, TYPE_CHECKING

import arviz as az
import cmdstanpy
import numpy as np
import numpy.typing as npt
import xarray as xr

from cmdstanpy.stanfit import CmdStanMCMC
from tqdm import tqdm

from stanrelabel.exceptions import DuplicateNameError, SampleStoreError

if TYPE_CHECKING:
    from stanrelabel import custom_types

# Splits a flat name into its variable name and (optional) index expression
_FLAT_NAME_RE = re.compile(r"^(?P<variable>[^\[]+)(?:\[(?P<index>[^\]]*)\])?$")


def split_flat_name(name: str) -> tuple[str, tuple[str, ...]]:
    """Split a flat name into its variable name and index labels.

    :param name: Flat name, e.g. ``"r_site[A,Intercept]"``
    :type name: str

    :returns: The variable name and the tuple of index labels
    :rtype: tuple[str, tuple[str, ...]]

    Example:
        >>> split_flat_name("r_site[A,Intercept]")
        ('r_site', ('A', 'Intercept'))
        >>> split_flat_name("lp__")
        ('lp__', ())
    """
    if (match_obj := _FLAT_NAME_RE.match(name)) is None:
        return name, ()
    if (index := match_obj.group("index")) is None:
        return match_obj.group("variable"), ()
    return match_obj.group("variable"), tuple(index.split(","))


def parse_variables(names: Sequence[str]) -> dict[str, tuple[int, ...]]:
    """Derive variable names and dimensions from a flat name table.

    Variables are listed in the order of their first column. The size of each
    dimension is the number of distinct labels observed at that index position.

    :param names: Flat name table
    :type names: Sequence[str]

    :returns: Mapping from variable name to dimensions (empty for scalars)
    :rtype: dict[str, tuple[int, ...]]

    Example:
        >>> parse_variables(["b_Intercept", "r_site[A,Intercept]", "r_site[B,Intercept]"])
        {'b_Intercept': (), 'r_site': (2, 1)}
    """
    labels: dict[str, list[dict[str, None]]] = {}
    for name in names:
        variable, index = split_flat_name(name)
        positions = labels.setdefault(variable, [{} for _ in index])
        for position, label in zip(positions, index):
            position[label] = None
    return {
        variable: tuple(len(position) for position in positions)
        for variable, positions in labels.items()
    }


class SampleStore:
    """Named draw columns of all chains of a fitted model.

    :param names: Flat name table, one unique name per column
    :type names: Sequence[str]
    :param chains: Draws of each chain, shaped (n_iterations, n_columns). All
        chains must have the same shape.
    :type chains: Sequence[npt.NDArray]
    :param warmup: Number of saved warmup iterations at the start of each chain.
        Defaults to no warmup.
    :type warmup: Optional[Sequence[custom_types.Integer]]
    :param column_meta: One metadata dictionary per column. Defaults to empty
        dictionaries.
    :type column_meta: Optional[Sequence[dict[str, Any]]]
    :param chain_meta: One metadata dictionary per chain (e.g. sampler
        diagnostics). Defaults to empty dictionaries.
    :type chain_meta: Optional[Sequence[dict[str, Any]]]
    :param original_names: Flat name table before any renaming. Defaults to None.
    :type original_names: Optional[Sequence[str]]

    :ivar names: The flat name table
    :ivar chains: The draws of each chain
    :ivar warmup: Saved warmup iterations of each chain
    :ivar column_meta: Per-column metadata
    :ivar chain_meta: Per-chain metadata
    :ivar original_names: Flat names before renaming, if recorded
    :ivar variables: Mapping from variable name to dimensions

    :raises SampleStoreError: If chains and the name table are inconsistent
    :raises DuplicateNameError: If the name table contains duplicates

    Example:
        >>> store = SampleStore(
        ...     names=["b[1]", "lp__"],
        ...     chains=[np.zeros((150, 2)), np.zeros((150, 2))],
        ...     warmup=[50, 50],
        ... )
        >>> store.n_kept
        100
    """

    def __init__(
        self,
        names: Sequence[str],
        chains: Sequence[npt.NDArray],
        warmup: Optional[Sequence[custom_types.Integer]] = None,
        column_meta: Optional[Sequence[dict[str, Any]]] = None,
        chain_meta: Optional[Sequence[dict[str, Any]]] = None,
        original_names: Optional[Sequence[str]] = None,
    ):
        self.names = list(names)
        self.chains = [np.asarray(chain, dtype=float) for chain in chains]
        self.warmup = (
            [0] * len(self.chains) if warmup is None else [int(w) for w in warmup]
        )
        self.column_meta = (
            [{} for _ in self.names]
            if column_meta is None
            else [dict(meta) for meta in column_meta]
        )
        self.chain_meta = (
            [{} for _ in self.chains]
            if chain_meta is None
            else [dict(meta) for meta in chain_meta]
        )
        self.original_names = None if original_names is None else list(original_names)

        # Check the invariants and record the variables
        self.validate()
        self.variables = parse_variables(self.names)

    def validate(self) -> None:
        """Check that chains, name table, and bookkeeping are consistent.

        :raises SampleStoreError: If any chain is not two-dimensional, has a column
            count different from the name table, or has a different number of
            iterations than the other chains; or if the warmup or metadata lists
            do not match the number of chains or columns.
        :raises DuplicateNameError: If the name table contains duplicates
        """
        # Names must be unique
        if len(set(self.names)) != len(self.names):
            duplicates = sorted(
                name for name in set(self.names) if self.names.count(name) > 1
            )
            raise DuplicateNameError(
                f"The name table contains duplicate names: {', '.join(duplicates)}"
            )

        # Chains must be two-dimensional and agree with the name table
        for chain_ind, chain in enumerate(self.chains):
            if chain.ndim != 2:
                raise SampleStoreError(
                    f"Chain {chain_ind} must be two-dimensional, got {chain.ndim} "
                    "dimensions."
                )
            if chain.shape[1] != len(self.names):
                raise SampleStoreError(
                    f"Chain {chain_ind} has {chain.shape[1]} columns, but the name "
                    f"table has {len(self.names)} entries."
                )

        # All chains must have the same number of iterations
        if len({chain.shape[0] for chain in self.chains}) > 1:
            raise SampleStoreError(
                "All chains must have the same number of iterations, got "
                f"{[chain.shape[0] for chain in self.chains]}."
            )

        # Bookkeeping must line up with chains and columns
        if len(self.warmup) != len(self.chains):
            raise SampleStoreError("There must be one warmup count per chain.")
        if any(
            not 0 <= warmup <= chain.shape[0]
            for warmup, chain in zip(self.warmup, self.chains)
        ):
            raise SampleStoreError(
                "Warmup counts must lie between zero and the number of iterations."
            )
        if len(self.column_meta) != len(self.names):
            raise SampleStoreError("There must be one metadata entry per column.")
        if len(self.chain_meta) != len(self.chains):
            raise SampleStoreError("There must be one metadata entry per chain.")

    def replace(self, **changes: Any) -> "SampleStore":
        """Build a new store with some attributes replaced.

        Attributes that are not replaced are copied, so the new store never shares
        mutable state with this one.

        :param changes: Replacement values for any of the constructor arguments
        :type changes: Any

        :returns: The new store
        :rtype: SampleStore
        """
        kwargs = {
            "names": list(self.names),
            "chains": [chain.copy() for chain in self.chains],
            "warmup": list(self.warmup),
            "column_meta": [dict(meta) for meta in self.column_meta],
            "chain_meta": [dict(meta) for meta in self.chain_meta],
            "original_names": self.original_names,
        }
        kwargs.update(changes)
        return type(self)(**kwargs)

    def copy(self) -> "SampleStore":
        """Deep copy of the store.

        :returns: The copy
        :rtype: SampleStore
        """
        return self.replace()

    @property
    def is_empty(self) -> bool:
        """Whether the store holds no draws at all."""
        return len(self.chains) == 0 or len(self.names) == 0

    @property
    def n_chains(self) -> int:
        """Number of chains."""
        return len(self.chains)

    @property
    def n_columns(self) -> int:
        """Number of columns (flat names)."""
        return len(self.names)

    @property
    def n_iterations(self) -> int:
        """Number of iterations (warmup and kept) per chain."""
        return self.chains[0].shape[0] if self.chains else 0

    @property
    def n_kept(self) -> int:
        """Number of kept (post-warmup) draws per chain, taken from the first chain."""
        return self.n_iterations - self.warmup[0] if self.chains else 0

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)

    def column_index(self, name: str) -> int:
        """Position of a flat name in the name table.

        :param name: Flat name to look up
        :type name: str

        :returns: The position of the name
        :rtype: int

        :raises KeyError: If the name is not in the store
        """
        try:
            return self.names.index(name)
        except ValueError as e:
            raise KeyError(f"'{name}' is not in the sample store.") from e

    def __getitem__(self, name: str) -> npt.NDArray:
        """Draws of one column for all chains, shaped (n_chains, n_iterations)."""
        index = self.column_index(name)
        return np.stack([chain[:, index] for chain in self.chains])

    def kept_draws(self, name: str) -> npt.NDArray:
        """Post-warmup draws of one column, concatenated chain after chain.

        :param name: Flat name of the column
        :type name: str

        :returns: One-dimensional array of all kept draws
        :rtype: npt.NDArray

        :raises KeyError: If the name is not in the store
        """
        index = self.column_index(name)
        return np.concatenate(
            [
                chain[warmup:, index]
                for chain, warmup in zip(self.chains, self.warmup)
            ]
        )

    def chain_dict(self, chain_ind: custom_types.Integer) -> dict[str, npt.NDArray]:
        """The draws of one chain as a collection of named vectors.

        :param chain_ind: Index of the chain
        :type chain_ind: custom_types.Integer

        :returns: Mapping from flat name to the column's draws, in table order
        :rtype: dict[str, npt.NDArray]
        """
        chain = self.chains[chain_ind]
        return {name: chain[:, index] for index, name in enumerate(self.names)}

    def variable_columns(self) -> dict[str, list[int]]:
        """Positions of the columns of each variable.

        :returns: Mapping from variable name to column positions in table order
        :rtype: dict[str, list[int]]
        """
        columns: dict[str, list[int]] = {}
        for index, name in enumerate(self.names):
            columns.setdefault(split_flat_name(name)[0], []).append(index)
        return columns

    @classmethod
    def from_cmdstan(cls, fit: CmdStanMCMC, progress: bool = False) -> "SampleStore":
        """Build a raw store from CmdStan sampling output.

        The log density ``lp__`` is kept as a column. All other sampler diagnostic
        columns (names ending in ``__``) are moved to the per-chain metadata.

        :param fit: Sampling output
        :type fit: CmdStanMCMC
        :param progress: Whether to display a progress bar. Defaults to False.
        :type progress: bool

        :returns: The raw store with flat Stan names
        :rtype: SampleStore
        """
        # Only ask for warmup draws when they were saved
        inc_warmup = bool(fit.metadata.cmdstan_config.get("save_warmup", False))
        draws = fit.draws(inc_warmup=inc_warmup)
        n_warmup = draws.shape[0] - fit.num_draws_sampling

        # Separate sampler diagnostics from model quantities
        column_names = list(fit.column_names)
        method_cols = [
            ind
            for ind, name in enumerate(column_names)
            if name.endswith("__") and name != "lp__"
        ]
        keep_cols = [ind for ind in range(len(column_names)) if ind not in method_cols]

        # Split the draws by chain
        chains, chain_meta = [], []
        for chain_ind in tqdm(
            range(draws.shape[1]), desc="Loading chains", disable=not progress
        ):
            chains.append(np.ascontiguousarray(draws[:, chain_ind, keep_cols]))
            chain_meta.append(
                {column_names[ind]: draws[:, chain_ind, ind].copy() for ind in method_cols}
            )

        return cls(
            names=[column_names[ind] for ind in keep_cols],
            chains=chains,
            warmup=[n_warmup] * len(chains),
            chain_meta=chain_meta,
        )

    def to_inference_data(self, include_warmup: bool = False) -> az.InferenceData:
        """Convert the store to an ArviZ InferenceData object.

        Each variable becomes one data variable of the posterior group. Index
        labels become named coordinates (``<variable>_dim_<k>``) when the columns
        of a variable form a complete grid over the observed labels; otherwise
        the variable keeps a single flat dimension labeled by the full index
        expression.

        :param include_warmup: Whether to add a ``warmup_posterior`` group with
            the saved warmup draws. Defaults to False.
        :type include_warmup: bool

        :returns: The InferenceData object
        :rtype: az.InferenceData
        """
        groups = {"posterior": self._build_dataset(warmup=False)}
        if include_warmup and min(self.warmup, default=0) > 0:
            groups["warmup_posterior"] = self._build_dataset(warmup=True)
        return az.InferenceData(**groups)

    def _build_dataset(self, warmup: bool) -> xr.Dataset:
        """Build an xarray dataset of either the warmup or the kept draws."""
        # Slice out the draws. Chains may differ in their warmup counts, so the
        # number of draws is taken from the shortest segment.
        segments = [
            chain[:n_warmup] if warmup else chain[n_warmup:]
            for chain, n_warmup in zip(self.chains, self.warmup)
        ]
        n_draws = min(segment.shape[0] for segment in segments)
        stacked = np.stack([segment[:n_draws] for segment in segments])
        chain_coords = {
            "chain": np.arange(self.n_chains),
            "draw": np.arange(n_draws),
        }

        data_vars = {}
        for variable, columns in self.variable_columns().items():
            var_draws = stacked[..., columns]
            indices = [split_flat_name(self.names[col])[1] for col in columns]

            # Scalars have no index
            if indices == [()]:
                data_vars[variable] = xr.DataArray(
                    var_draws[..., 0], dims=("chain", "draw"), coords=chain_coords
                )
                continue

            # Labels observed at each index position
            positions = [
                list(dict.fromkeys(index[dimind] for index in indices))
                for dimind in range(len(indices[0]))
            ]
            dimnames = [f"{variable}_dim_{dimind}" for dimind in range(len(positions))]
            is_grid = all(len(index) == len(positions) for index in indices) and (
                set(indices) == set(itertools.product(*positions))
            )

            # Reshape full grids. Anything else keeps a single flat dimension.
            if is_grid:
                shape = tuple(len(position) for position in positions)
                array = np.full((*stacked.shape[:2], *shape), np.nan)
                for colind, index in enumerate(indices):
                    target = tuple(
                        position.index(label)
                        for position, label in zip(positions, index)
                    )
                    array[(..., *target)] = var_draws[..., colind]
                data_vars[variable] = xr.DataArray(
                    array,
                    dims=("chain", "draw", *dimnames),
                    coords={
                        **chain_coords,
                        **dict(zip(dimnames, positions)),
                    },
                )
            else:
                data_vars[variable] = xr.DataArray(
                    var_draws,
                    dims=("chain", "draw", f"{variable}_dim_0"),
                    coords={
                        **chain_coords,
                        f"{variable}_dim_0": [",".join(index) for index in indices],
                    },
                )

        return xr.Dataset(data_vars)

    def save_netcdf(
        self, filename: str | os.PathLike, include_warmup: bool = False
    ) -> str:
        """Save the store as NetCDF through ArviZ.

        :param filename: Path of the NetCDF file
        :type filename: Union[str, os.PathLike]
        :param include_warmup: Whether to include the warmup draws. Defaults to
            False.
        :type include_warmup: bool

        :returns: The path of the written file
        :rtype: str
        """
        return self.to_inference_data(include_warmup=include_warmup).to_netcdf(
            str(filename), engine="h5netcdf"
        )

    def __repr__(self) -> str:
        return (
            f"SampleStore(n_columns={self.n_columns}, n_chains={self.n_chains}, "
            f"n_iterations={self.n_iterations}, warmup={self.warmup})"
        )


def load_cmdstan_csv(
    path: str | list[str] | os.PathLike, progress: bool = False
) -> SampleStore:
    """Load CmdStan CSV sampling output into a raw sample store.

    :param path: Path specification for the CSV files (single file, list of
        files, glob pattern, or directory)
    :type path: Union[str, list[str], os.PathLike]
    :param progress: Whether to display a progress bar. Defaults to False.
    :type progress: bool

    :returns: The raw store with flat Stan names
    :rtype: SampleStore

    :raises ValueError: If the files are not CmdStan sampling output
    """
    fit = cmdstanpy.from_csv(path, method="sample")
    if not isinstance(fit, CmdStanMCMC):
        raise ValueError(f"Expected CmdStan sampling output at {path}.")
    return SampleStore.from_cmdstan(fit, progress=progress)
