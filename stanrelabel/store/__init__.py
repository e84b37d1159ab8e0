# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Sample store: named draw columns of all chains, with loaders and exporters."""

from stanrelabel.store.sample_store import (
    load_cmdstan_csv,
    parse_variables,
    SampleStore,
    split_flat_name,
)
