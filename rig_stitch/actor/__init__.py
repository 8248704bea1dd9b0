"""Rig actor module: joint naming, mapping, stitching and merging.

Combines an attachment's skeleton (garment, prop) with a base character's
skeleton so the attachment's skinned meshes deform with the base joints.
"""
