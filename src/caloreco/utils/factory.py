"""Contains functions needed to instantiate a class from a dictionary.

This allows to generically convert a YAML block into an instantiated tool
with all the appropriate checks that the class exists and is provided
with appropriate arguments.
"""

from copy import deepcopy

from .logger import logger

__all__ = ["module_dict", "instantiate"]


def module_dict(module, pattern=None):
    """Converts module into a dictionary which maps class names onto classes.

    Each class is registered under its Python name and, if it defines one,
    under its configuration `name` attribute.

    Parameters
    ----------
    module : module
        Module from which to fetch the classes
    pattern : str, optional
        If specified, looks for a specific pattern in the class name

    Returns
    -------
    dict
        Dictionary which maps acceptable class names to classes themselves
    """
    classes = {}
    cls_names = getattr(module, "__all__", dir(module))
    for cls_name in cls_names:
        # Skip private objects
        if cls_name[0] == "_":
            continue

        # If a pattern is specified, check for it in the class name
        cls = getattr(module, cls_name)
        if not isinstance(cls, type):
            continue
        if pattern is not None and pattern not in cls.__name__:
            continue

        # Only consider classes which belong to the module of interest
        if module.__name__ in cls.__module__:
            classes[cls_name] = cls
            if getattr(cls, "name", None):
                classes[cls.name] = cls

    return classes


def instantiate(module_dict, cfg, alt_name=None, **kwargs):
    """Instantiates a class based on a configuration dictionary and a list of
    possible classes to chose from.

    This function supports two YAML configuration structures
    (parsed as a dictionary):

    .. code-block:: yaml

        tool:
          name: tool_name
          kwarg_1: value_1
          kwarg_2: value_2

    or

    .. code-block:: yaml

        tool:
          name: tool_name
          kwargs:
            kwarg_1: value_1
            kwarg_2: value_2

    Parameters
    ----------
    module_dict : dict
        Dictionary which maps a class name onto an object class.
    cfg : Union[str, dict]
        Configuration dictionary (or class name if there are no parameters)
    alt_name : str, optional
        Key under which the class name can be specfied, beside 'name' itself
    **kwargs : dict, optional
        Additional parameters to pass to the class

    Returns
    -------
    object
        Instantiated object
    """
    # If the configuration is a string, assume it is a class name with no
    # parameters to be passed to it
    if isinstance(cfg, str):
        cfg = {"name": cfg}

    # Get the name of the class, check that it exists
    config = deepcopy(cfg)
    name = "name"
    if alt_name is not None and alt_name in config:
        if "name" in config:
            raise ValueError(f"Should specify one of `name` or `{alt_name}`")
        name = alt_name
    if name not in config:
        raise ValueError("Could not find the name of the class under `name`")

    class_name = config.pop(name)
    if class_name not in module_dict:
        raise ValueError(
            f"Could not find '{class_name}' in the dictionary which maps "
            f"names to classes. Available names: {list(module_dict.keys())}"
        )

    # Gather the keyword arguments to pass to the class
    args = config.pop("args", [])
    kwargs = dict(config.pop("kwargs", {}), **kwargs)
    for key in config.keys():
        if key in kwargs:
            raise ValueError(
                f"The keyword argument {key} is provided at the top level "
                "and under `kwargs`. Ambiguous."
            )
    kwargs.update(config)

    # Intialize
    cls = module_dict[class_name]
    try:
        return cls(*args, **kwargs)

    except Exception as err:
        logger.error(
            f"Failed to instantiate {cls.__name__} with these arguments:\n"
            f"  - args: {args}\n  - kwargs: {kwargs}"
        )

        raise err
