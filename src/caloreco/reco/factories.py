"""Construct reconstruction tools from their configuration blocks."""

from caloreco.utils.factory import instantiate, module_dict

from . import layered, split, tower

__all__ = ["tower_tool_factory", "splitter_factory"]


def tower_tool_factory(cfg, **kwargs):
    """Instantiates a tower tool from a configuration block.

    Parameters
    ----------
    cfg : dict
        Tower tool configuration, with its type under `name`
    **kwargs : dict, optional
        Additional parameters to pass to the tool (e.g. `geometry`)

    Returns
    -------
    Union[CaloTowerTool, LayeredCaloTowerTool]
        Initialized tower tool
    """
    tools = {**module_dict(tower), **module_dict(layered)}

    return instantiate(tools, cfg, **kwargs)


def splitter_factory(cfg):
    """Instantiates a cluster splitter from a configuration block.

    Parameters
    ----------
    cfg : dict
        Splitter configuration

    Returns
    -------
    ClusterSplitter
        Initialized cluster splitter
    """
    return instantiate(module_dict(split, pattern="Splitter"), cfg)
