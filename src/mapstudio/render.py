"""Scene orchestration: run each map layer in isolation and collect a render report."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .basemap import BaseMap, draw_custom_map, draw_topology_map, place_projection
from .cache import TTLCache
from .choropleth import ChoroplethResult, build_choropleth, custom_fills, topology_fills
from .config import AppConfig
from .context import RenderContext
from .custom_map import CustomMap, CustomMapError
from .features import ResolvedFeatures
from .labels import choropleth_labels, symbol_labels
from .legends import LegendFlags, legend_height, render_legends
from .models import DataRow
from .paths import render_paths
from .projection import MapProjection
from .scene import SceneNode, node, to_svg
from .settings import MapSettings
from .symbols import SymbolLayer, render_symbols
from .topology import Topology, TopologyError


_LOGGER = logging.getLogger("mapstudio.render")


@dataclass(frozen=True, slots=True)
class RenderRequest:
    """One scene's inputs. Symbol and region layers may read different row sets."""

    settings: MapSettings
    symbol_rows: tuple[DataRow, ...] = ()
    region_rows: tuple[DataRow, ...] = ()
    topology: Topology | None = None
    topology_key: str | None = None
    custom_map_svg: str | None = None
    active_tool: str = "inspect"
    selected_path_id: str | None = None

    @property
    def has_custom_map(self) -> bool:
        return bool(self.custom_map_svg and self.custom_map_svg.strip())


@dataclass(frozen=True, slots=True)
class RenderedScene:
    root: SceneNode
    width: float
    height: float
    legend_height: float

    def find(self, element_id: str) -> SceneNode | None:
        return self.root.find(element_id)

    def to_svg(self) -> str:
        return to_svg(self.root)


@dataclass(slots=True)
class RenderReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


@dataclass(slots=True)
class _Layers:
    """Scratch state of one render pass; never outlives `MapRenderer.render`."""

    projection: MapProjection
    base: BaseMap | None = None
    resolved: ResolvedFeatures | None = None
    custom_map: CustomMap | None = None
    choropleth: ChoroplethResult | None = None
    symbols: SymbolLayer | None = None
    symbol_labels: SceneNode | None = None
    choropleth_labels: SceneNode | None = None
    legends: SceneNode | None = None
    legend_flags: LegendFlags = field(default_factory=LegendFlags)
    paths: SceneNode | None = None
    defs: list[SceneNode] = field(default_factory=list)


class MapRenderer:
    """Deterministic renderer for one map scene.

    Holds only the config and an explicitly owned cache; rendering the same
    request twice yields equal scenes.
    """

    def __init__(self, cfg: AppConfig, *, cache: TTLCache | None = None) -> None:
        self.cfg = cfg
        self.cache = cache if cache is not None else TTLCache(cfg.cache.max_entries, cfg.cache.ttl_s)

    def render(self, req: RenderRequest) -> tuple[RenderedScene, RenderReport]:
        report = RenderReport()
        ctx = RenderContext.create(self.cfg, req.settings, cache=self.cache, topology_key=req.topology_key)
        layers = _Layers(projection=ctx.base_projection())

        self._guarded("base map", report, lambda: self._render_base(ctx, req, layers, report))
        if not req.has_custom_map:
            self._guarded("symbols", report, lambda: self._render_symbols(ctx, req, layers))
        self._guarded("labels", report, lambda: self._render_labels(ctx, req, layers))
        self._guarded("legends", report, lambda: self._render_legends(ctx, req, layers))
        self._guarded("paths", report, lambda: self._render_paths(ctx, req, layers))

        scene = self._assemble(ctx, layers)
        report.summary = {
            "features": len(layers.resolved.features) if layers.resolved is not None else 0,
            "custom_features": len(layers.custom_map.features) if layers.custom_map is not None else 0,
            "symbols": len(layers.symbols.symbols) if layers.symbols is not None else 0,
            "symbol_labels": len(layers.symbol_labels.children) if layers.symbol_labels is not None else 0,
            "choropleth_labels": (
                len(layers.choropleth_labels.children) if layers.choropleth_labels is not None else 0
            ),
            "legends": layers.legend_flags.count,
            "paths": len(req.settings.styling.drawn_paths),
        }
        _LOGGER.info(
            "Rendered %s scene %sx%s: %s",
            ctx.geography,
            scene.width,
            scene.height,
            ", ".join(f"{key}={value}" for key, value in report.summary.items()),
        )
        return (scene, report)

    def _guarded(self, layer: str, report: RenderReport, step: Callable[[], None]) -> None:
        try:
            step()
        except Exception as exc:
            _LOGGER.warning("%s layer failed: %s", layer, exc, exc_info=_LOGGER.isEnabledFor(logging.DEBUG))
            report.add_error(f"{layer} layer failed: {exc}")

    def _render_base(
        self,
        ctx: RenderContext,
        req: RenderRequest,
        layers: _Layers,
        report: RenderReport,
    ) -> None:
        style = ctx.styling.base

        if req.has_custom_map:
            try:
                custom_map = CustomMap.parse(req.custom_map_svg or "", ctx.geography)
            except CustomMapError as exc:
                report.add_error(f"Custom map error: {exc}")
                return
            layers.custom_map = custom_map
            fills: dict[int, str] = {}

            def _custom_choropleth() -> None:
                result = self._build_choropleth(ctx, req)
                if result is not None:
                    fills.update(custom_fills(result, custom_map))
                layers.choropleth = result

            self._guarded("choropleth", report, _custom_choropleth)
            layers.base = draw_custom_map(custom_map, layers.projection, style, fills=fills)
            return

        if req.topology is None:
            report.add_error(f"No map data found for {ctx.geography}")
            return
        try:
            resolved = ctx.resolve_features(req.topology)
        except TopologyError as exc:
            report.add_error(f"Invalid map data: {exc}")
            return
        for msg in resolved.warnings:
            report.add_warning(msg)
        for msg in resolved.errors:
            report.add_error(msg)
        if resolved.is_empty:
            if not resolved.errors:
                report.add_error(f"No map data found for {ctx.geography}")
            return
        layers.resolved = resolved

        layers.projection, clipped = place_projection(
            layers.projection,
            resolved,
            clip_to_country=req.settings.clip_to_country,
            width=ctx.width,
            map_height=ctx.map_height,
        )
        topo_fills: dict[int, str] = {}

        def _topology_choropleth() -> None:
            result = self._build_choropleth(ctx, req)
            if result is not None:
                topo_fills.update(topology_fills(result, resolved, ctx.normalize))
            layers.choropleth = result

        self._guarded("choropleth", report, _topology_choropleth)
        layers.base = draw_topology_map(resolved, layers.projection, style, clipped=clipped, fills=topo_fills)
        if layers.base.defs is not None:
            layers.defs.extend(layers.base.defs.children)

    def _build_choropleth(self, ctx: RenderContext, req: RenderRequest) -> ChoroplethResult | None:
        region = req.settings.region
        if region is None or not req.region_rows:
            return None
        return build_choropleth(
            req.region_rows,
            region,
            default_fill=ctx.styling.base.default_state_fill_color,
            normalize=ctx.normalize,
        )

    def _render_symbols(self, ctx: RenderContext, req: RenderRequest, layers: _Layers) -> None:
        dims = req.settings.symbol
        if dims is None or not dims.is_bound or not req.symbol_rows:
            return
        layers.symbols = render_symbols(req.symbol_rows, dims, ctx.styling.symbol, layers.projection)

    def _render_labels(self, ctx: RenderContext, req: RenderRequest, layers: _Layers) -> None:
        overrides = ctx.styling.label_overrides
        labels_cfg = self.cfg.labels
        dims = req.settings.symbol
        if layers.symbols is not None and dims is not None:
            layers.symbol_labels = symbol_labels(
                layers.symbols.symbols,
                template=dims.label_template,
                style=ctx.styling.symbol.label,
                alignment=ctx.styling.symbol.label_alignment,
                columns=ctx.columns,
                geography=ctx.geography,
                overrides=overrides,
                canvas_width=ctx.width,
                canvas_height=ctx.map_height,
                cfg=labels_cfg,
            )

        region = req.settings.region
        if region is None or not region.state_column or layers.base is None:
            return
        layers.choropleth_labels = choropleth_labels(
            req.region_rows,
            state_column=region.state_column,
            template=region.label_template,
            style=ctx.styling.choropleth_label,
            columns=ctx.columns,
            geography=ctx.geography,
            overrides=overrides,
            normalize=ctx.normalize,
            projection=layers.projection,
            resolved=layers.resolved,
            custom_map=layers.custom_map,
            cfg=labels_cfg,
        )

    def _render_legends(self, ctx: RenderContext, req: RenderRequest, layers: _Layers) -> None:
        region = req.settings.region
        layers.legend_flags = LegendFlags.for_layers(
            symbol_dims=req.settings.symbol,
            symbols_drawn=layers.symbols is not None and bool(layers.symbols.valid_rows),
            region_binding=region.color if region is not None else None,
            region_drawn=layers.choropleth is not None,
        )
        layers.legends = render_legends(
            layers.legend_flags,
            width=ctx.width,
            map_height=ctx.map_height,
            styling=ctx.styling,
            columns=ctx.columns,
            geography=ctx.geography,
            symbol_dims=req.settings.symbol,
            symbol_rows=layers.symbols.valid_rows if layers.symbols is not None else (),
            symbol_scale=layers.symbols.color_scale if layers.symbols is not None else None,
            region_binding=region.color if region is not None else None,
            region_rows=req.region_rows,
            region_scale=layers.choropleth.scale if layers.choropleth is not None else None,
            cfg=self.cfg.legends,
        )

    def _render_paths(self, ctx: RenderContext, req: RenderRequest, layers: _Layers) -> None:
        layers.paths, markers = render_paths(
            ctx.styling.drawn_paths,
            ctx.styling.path_defaults,
            active_tool=req.active_tool,
            selected_path_id=req.selected_path_id,
        )
        layers.defs.extend(markers)

    def _assemble(self, ctx: RenderContext, layers: _Layers) -> RenderedScene:
        width = ctx.width
        extra = legend_height(layers.legend_flags, self.cfg.legends)
        height = ctx.map_height + extra
        children: list[SceneNode] = [
            node("rect", {"id": "Background", "width": width, "height": height, "fill": ctx.background})
        ]
        if layers.defs:
            children.append(node("defs", children=layers.defs))
        if layers.base is not None:
            children.append(layers.base.map_group)
        for layer in (
            layers.symbols.group if layers.symbols is not None else None,
            layers.choropleth_labels,
            layers.symbol_labels,
            layers.legends,
            layers.paths,
        ):
            if layer is not None:
                children.append(layer)
        root = node(
            "svg",
            {"width": width, "height": height, "viewBox": f"0 0 {width} {height:g}"},
            children,
        )
        return RenderedScene(root=root, width=width, height=height, legend_height=extra)


def format_render_lines(report: RenderReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Map rendering completed with no errors.")
    return lines
