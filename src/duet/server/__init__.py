"""Server side of the bridge: bindings, input slots, render channel, sessions."""

from duet.server.bindings import Binding, BindingRegistry
from duet.server.bridge import ReactiveBridge, ReactiveFramework
from duet.server.graph import DependencyGraph, OutputNode
from duet.server.registry import UNSET, InputRegistry, ReactiveInputSlot
from duet.server.render_channel import RenderChannel
from duet.server.session import BridgeSession, SessionManager

__all__ = [
    "UNSET",
    "Binding",
    "BindingRegistry",
    "BridgeSession",
    "DependencyGraph",
    "InputRegistry",
    "OutputNode",
    "ReactiveBridge",
    "ReactiveFramework",
    "ReactiveInputSlot",
    "RenderChannel",
    "SessionManager",
]
