"""Pure derived views over store snapshots"""
