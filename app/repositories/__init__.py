"""레포지토리 패키지 — 레코드 저장소 쿼리 계층.

Repository package — Record store query layer.
Each repository extends BaseRepository for generic CRUD and adds the
order, stage and assignment queries the scheduler needs.
"""
