"""
LeafSmith Advanced Example

This example tunes detection, rearranges placed leaves by hand, previews the
result and uploads the texture set to a running texture save endpoint.
"""

import json

from PIL import Image

from leafsmith import Leafsmith, LayerType, Settings

# Larger output with a tighter crop margin
ls = Leafsmith(Settings(output_size=2048, padding=2))

print("Loading atlas...")
ls.load(
    [
        "textures/LeafSet024_Color.jpg",
        "textures/LeafSet024_Opacity.jpg",
        "textures/LeafSet024_NormalGL.jpg",
        "textures/LeafSet024_Roughness.jpg",
    ],
    auto_place=False,
)

# Stricter threshold drops faint fragments
result = ls.set_detection_params(threshold=160, min_area=800)
print(f"Detected {len(result.leaves)} leaves")

# Place the three largest leaves, then vary them
largest = sorted(result.leaves, key=lambda leaf: leaf.area, reverse=True)[:3]
placed = ls.place(leaf.id for leaf in largest)
for i, instance in enumerate(placed):
    ls.placements.update_instance(instance.id, {"rotation": 40 * i, "scale": 1.5 - 0.2 * i})
ls.placements.duplicate_instance(placed[0].id)
ls.placements.update_instance(ls.placements.selected_id, {"flip_x": True})

print("\n--- Placement Preview ---")
print(json.dumps(ls.placements.to_dict(), indent=2)[:500] + "...")

# Color with Opacity applied, as an editor would show it
Image.fromarray(ls.render(combined=True)).save("output/preview.png")
print("✅ Saved combined preview")

Image.fromarray(ls.render(LayerType.NormalGL, tileable=True)).save("output/normal_tiled.png")
print("✅ Saved tileable normal map")

print("\n--- Uploading ---")
report = ls.export_remote(
    "LeafSet024_tileable",
    endpoint="http://localhost:5173/api/save-texture",
    tileable=True,
)
print(f"✅ Uploaded {len(report.delivered)} textures")
