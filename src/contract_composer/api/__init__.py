"""HTTP surface of the contract composer."""
