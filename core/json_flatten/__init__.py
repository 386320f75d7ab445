# core/json_flatten/__init__.py

"""
CSV JSON Flatten API core package.

- table.py  : CSV <-> Table（ヘッダ付きレコード列）の相互変換
- service.py: JSON 列の自動判定と 1 階層展開（メイン処理）
- models.py : Pydantic モデル定義
- errors.py : エラー種別（例外クラス）
"""
