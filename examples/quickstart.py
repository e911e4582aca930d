"""
LeafSmith Quick Start Example

This example loads a foliage atlas, lays every detected leaf out in a grid
and writes the full texture set.
"""

from leafsmith import Leafsmith

# Initialize LeafSmith (reads LEAFSMITH_* settings from environment)
ls = Leafsmith()

print("Loading atlas...")
result = ls.load_folder("textures/LeafSet024")
print(f"✅ Detected {len(result.leaves)} leaves using {result.source}")

print("\nWriting texture set...")
report = ls.export_local("output/", tileable=True)
for layer_type, path in report.delivered.items():
    print(f"✅ {layer_type.value}: {path}")

print("\nDone! Check the output/ directory for your textures.")
