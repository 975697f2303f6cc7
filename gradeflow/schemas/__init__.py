"""对外数据契约。"""
