import matplotlib.pyplot as plt
import matplotlib.patches as patches
import matplotlib.lines as mlines

from models import TaskStatus


def plot_floor_map(floor_geometry, tasks, path=None, kpis=None, focus_index=None, ax=None, show=True):
    """Top-down (x, z) view of one floor: padded racks, bounds, tasks and the guidance path."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(12, 8))
    else:
        fig = ax.figure

    b = floor_geometry.bounds
    ax.add_patch(patches.Rectangle(
        (b.min_x, b.min_z), b.max_x - b.min_x, b.max_z - b.min_z,
        linewidth=1, edgecolor='gray', facecolor='none', linestyle='--', zorder=0
    ))
    for obs in floor_geometry.obstacles:
        ax.add_patch(patches.Rectangle(
            (obs.min_x, obs.min_z), obs.max_x - obs.min_x, obs.max_z - obs.min_z,
            linewidth=1, edgecolor='black', facecolor='lightblue', alpha=0.6, zorder=1
        ))

    floor_tasks = [(i, t) for i, t in enumerate(tasks) if t.floor_id == floor_geometry.floor_id]
    for i, t in floor_tasks:
        picked = t.status is TaskStatus.PICKED
        color = 'green' if picked else ('orange' if i != focus_index else 'red')
        ax.plot(t.coordinates.x, t.coordinates.z, 's', color=color, markersize=8, zorder=3)
        ax.text(t.coordinates.x, t.coordinates.z + 0.6, str(t.sequence), ha='center', va='bottom', fontsize=8, zorder=4)

    if path:
        xs = [p.x for p in path]
        zs = [p.z for p in path]
        ax.plot(xs, zs, '-', color='gold', linewidth=3, alpha=0.9, zorder=2)
        ax.plot(xs, zs, 'o', color='goldenrod', markersize=4, zorder=2)

    pad = 3
    ax.set_xlim(b.min_x - pad, b.max_x + pad)
    ax.set_ylim(b.min_z - pad, b.max_z + pad)
    ax.set_aspect('equal')
    ax.set_xlabel('x')
    ax.set_ylabel('z')
    ax.set_title(f"Floor {floor_geometry.floor_id}: racks, pick tasks, guidance path", fontsize=13)

    handles = [
        mlines.Line2D([], [], color='green', marker='s', linestyle='none', label='Picked'),
        mlines.Line2D([], [], color='orange', marker='s', linestyle='none', label='Pending'),
        mlines.Line2D([], [], color='red', marker='s', linestyle='none', label='Focused'),
        mlines.Line2D([], [], color='gold', linewidth=3, label='Path'),
    ]
    if kpis:
        route = kpis.get("Route", {})
        text = ""
        for k in ("Total Distance (m)", "Tasks", "Picked Tasks", "Partial Picks", "Total Time (min)"):
            if k in route:
                v = route[k]
                text += f"{k}: {v:.2f}\n" if isinstance(v, float) else f"{k}: {v}\n"
        handles.append(mlines.Line2D([], [], color='none', label=text.rstrip()))
    ax.legend(handles=handles, loc='upper left', bbox_to_anchor=(1.01, 1), fontsize=9, title="Route")

    if show:
        plt.show()
    return fig, ax
